"""
Domain Building Blocks

- Entity: identity-compared records (bookings)
- ValueObject: immutable values compared field by field (actors, tables, credentials)
- DomainEvent: facts emitted by a use case and published after commit
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> Any:
    """Reduce a field value to something json.dumps accepts"""
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item) for item in value]
    return value


@dataclass(kw_only=True, eq=False)
class Entity(ABC):
    """
    Record with identity

    Equality and hashing use id only. Subclasses are declared with
    eq=False so the dataclass machinery does not replace __eq__.
    """
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __eq__(self, other):
        return isinstance(other, self.__class__) and self.id == other.id

    def __hash__(self):
        return hash(self.id)


@dataclass(frozen=True)
class ValueObject(ABC):
    """Immutable value without identity"""


@dataclass(kw_only=True)
class DomainEvent:
    """
    Something that happened, described after the fact

    Handlers receive events only once the surrounding transaction has
    committed, so an event never describes a change that was rolled back.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utc_now)
    aggregate_id: UUID | None = None

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        """All fields as JSON-ready values, plus the event type"""
        data = {'event_type': self.event_type}
        for item in fields(self):
            data[item.name] = _plain(getattr(self, item.name))
        return data
