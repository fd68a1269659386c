"""Vocabulary of entities and event types.

Defines the one-hot encoding space: every ``entity:event`` pair owns one
slot at ``entity_index * len(events) + event_index``. The order of both
lists is part of a trained model's identity; reordering invalidates any
model or encoded data produced with the old order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import InvalidClassIndexError, MalformedTokenError, UnknownTokenError

TOKEN_DELIMITER = "|"
PART_DELIMITER = ":"

DEFAULT_ENTITIES: tuple[str, ...] = ("driver", "us")
DEFAULT_EVENTS: tuple[str, ...] = ("apply", "wait", "sms", "email", "hire")


def _check_unique(name: str, values: tuple[str, ...]) -> None:
    if not values:
        raise ValueError(f"{name} must not be empty")
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str) or not value:
            raise ValueError(f"{name} must contain non-empty strings, got {value!r}")
        if PART_DELIMITER in value or TOKEN_DELIMITER in value:
            raise ValueError(
                f"{name} entry {value!r} contains a reserved delimiter"
            )
        if value in seen:
            raise ValueError(f"Duplicate entry {value!r} in {name}")
        seen.add(value)


def split_token(token: str, position: int | None = None) -> tuple[str, str]:
    """Split an ``entity:event`` token into its two halves.

    Raises:
        MalformedTokenError: If the separator is missing or a half is empty.
    """
    entity, sep, event = token.partition(PART_DELIMITER)
    if not sep or not entity or not event:
        raise MalformedTokenError(token, position)
    return entity, event


@dataclass(frozen=True)
class EventVocabulary:
    """Immutable, ordered entity and event-type lists.

    Passed explicitly into every encoding call so several vocabularies can
    coexist in one process.

    Args:
        entities: Ordered entity names (e.g. ``("driver", "us")``).
        events: Ordered event-type names (e.g. ``("apply", "hire")``).
    """

    entities: tuple[str, ...] = DEFAULT_ENTITIES
    events: tuple[str, ...] = DEFAULT_EVENTS

    def __post_init__(self) -> None:
        # Accept any sequence but store tuples so the object stays hashable.
        object.__setattr__(self, "entities", tuple(self.entities))
        object.__setattr__(self, "events", tuple(self.events))
        _check_unique("entities", self.entities)
        _check_unique("events", self.events)

    @property
    def feature_length(self) -> int:
        """Length of one one-hot step vector."""
        return len(self.entities) * len(self.events)

    def index(self, entity: str, event: str, position: int | None = None) -> int:
        """Combined one-hot index of an ``(entity, event)`` pair.

        Raises:
            UnknownTokenError: If either half is not in the vocabulary.
        """
        token = f"{entity}{PART_DELIMITER}{event}"
        try:
            entity_index = self.entities.index(entity)
        except ValueError:
            raise UnknownTokenError(token, position, part="entity") from None
        try:
            event_index = self.events.index(event)
        except ValueError:
            raise UnknownTokenError(token, position, part="event") from None
        return entity_index * len(self.events) + event_index

    def token_index(self, token: str, position: int | None = None) -> int:
        """Combined index of an ``entity:event`` token."""
        entity, event = split_token(token, position)
        return self.index(entity, event, position)

    def decode(self, class_index: int) -> tuple[str, str]:
        """Inverse of :meth:`index`.

        Raises:
            InvalidClassIndexError: If ``class_index`` is outside
                ``[0, feature_length)``.
        """
        if isinstance(class_index, bool) or not isinstance(class_index, int):
            raise TypeError(
                f"Class index must be an int, got {type(class_index).__name__}"
            )
        if not 0 <= class_index < self.feature_length:
            raise InvalidClassIndexError(class_index, self.feature_length)
        entity_index, event_index = divmod(class_index, len(self.events))
        return self.entities[entity_index], self.events[event_index]

    def decode_token(self, class_index: int) -> str:
        """Decode a class index to its ``entity:event`` token."""
        return PART_DELIMITER.join(self.decode(class_index))

    def tokens(self) -> list[str]:
        """All tokens in index order."""
        return [
            f"{entity}{PART_DELIMITER}{event}"
            for entity in self.entities
            for event in self.events
        ]

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, str):
            return False
        entity, sep, event = token.partition(PART_DELIMITER)
        return bool(sep) and entity in self.entities and event in self.events

    def __len__(self) -> int:
        return self.feature_length

    def to_dict(self) -> dict[str, list[str]]:
        return {"entities": list(self.entities), "events": list(self.events)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventVocabulary:
        try:
            return cls(entities=tuple(data["entities"]), events=tuple(data["events"]))
        except KeyError as e:
            raise ValueError(f"Vocabulary dict is missing key {e}") from e


def default_vocabulary() -> EventVocabulary:
    """The driver hiring funnel vocabulary (10 one-hot slots)."""
    return EventVocabulary(DEFAULT_ENTITIES, DEFAULT_EVENTS)
