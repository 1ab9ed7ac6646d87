"""Base entity type.

Entities are dataclasses deriving from ``Model``, which contributes the four
bookkeeping attributes every table carries. Persisted attributes are declared
with ``column()``; plain dataclass fields are left alone by the ORM::

    @dataclass
    class Person(Model):
        Name: str = column(default="")
        Age: int = column("key:true", default=0)
        Email: str | None = column(default=None)

The table is named after the class unless it sets ``__tablename__``
(which may be namespaced, e.g. ``"dbo.Person"``).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from mud.values import utc_now

COLUMN_METADATA_KEY = "mud"


def column(
    tag: str = "",
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    **kwargs: Any,
) -> Any:
    """Declare a persisted attribute, with an optional annotation string.

    Extra keyword arguments are passed through to ``dataclasses.field``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[COLUMN_METADATA_KEY] = tag
    return field(default=default, default_factory=default_factory, metadata=metadata, **kwargs)


def table_name(entity: Any) -> str:
    """Table name for an entity instance or type."""
    cls = entity if isinstance(entity, type) else type(entity)
    return getattr(cls, "__tablename__", None) or cls.__name__


@dataclass(kw_only=True)
class Model:
    """Bookkeeping attributes shared by every entity.

    ``ID`` is None until the first save; ``DeleteDate`` is set when the row
    has been soft-deleted.
    """

    ID: str | None = None
    CreateDate: datetime = field(default_factory=utc_now)
    LastUpdate: datetime = field(default_factory=utc_now)
    DeleteDate: datetime | None = None

    def is_new(self) -> bool:
        return self.ID is None

    def is_deleted(self) -> bool:
        return self.DeleteDate is not None

    def disable(self) -> None:
        self.DeleteDate = utc_now()

    @classmethod
    def standing_data(cls) -> list[Model]:
        """Seed rows saved right after the table is created."""
        return []

    @classmethod
    def table_name(cls) -> str:
        return table_name(cls)


__all__ = ["Model", "column", "table_name", "COLUMN_METADATA_KEY"]
