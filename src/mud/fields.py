"""Column metadata: semantic field types, sizes and descriptors.

A ``FieldDescriptor`` is everything the ORM knows about one column: its
semantic type, size/precision, key/identity/unsigned flags, nullability and
the attribute path that reaches it on an entity instance. Descriptors are
derived once per entity type by ``mud.schema`` and rendered to DDL by the
active dialect.

Annotation mini-language:
    Comma-separated ``key:value`` pairs attached with ``mud.column(...)``::

        Age: int = column("key:true")
        Price: Decimal = column("type:decimal,size:10,2")
        Code: str = column("size:8")
        Born: datetime = column("type:time")

    ============  ===============================================
    key           meaning
    ============  ===============================================
    type          semantic type override (``time`` = ``datetime``)
    size          ``major[,minor]`` width / precision pair
    identity      ``true`` marks an identity column
    key           ``true`` adds an index on the column
    unsigned      ``true`` emits UNSIGNED where supported
    ============  ===============================================

    Unrecognised keys are ignored.

Native column types:
    ======== ============  ======== ============
    type     column        type     column
    ======== ============  ======== ============
    int      INT           double   DOUBLE
    long     BIGINT        datetime DATETIME
    bool     SMALLINT      char     VARCHAR(1)
    decimal  DECIMAL       string   VARCHAR(n)
    float    REAL          uuid     VARCHAR(36)
    ======== ============  ======== ============
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from mud.values import Float32


class FieldType(str, Enum):
    """Semantic column type."""

    INT = "int"
    LONG = "long"
    BOOL = "bool"
    DECIMAL = "decimal"
    FLOAT = "float"
    DOUBLE = "double"
    DATETIME = "datetime"
    CHAR = "char"
    STRING = "string"
    UUID = "uuid"

    @classmethod
    def parse(cls, text: str) -> FieldType | None:
        key = text.strip().lower()
        if key in ("time", "struct"):
            return cls.DATETIME
        try:
            return cls(key)
        except ValueError:
            return None


COLUMN_TYPES: dict[FieldType, str] = {
    FieldType.INT: "INT",
    FieldType.LONG: "BIGINT",
    FieldType.BOOL: "SMALLINT",
    FieldType.DECIMAL: "DECIMAL",
    FieldType.FLOAT: "REAL",
    FieldType.DOUBLE: "DOUBLE",
    FieldType.DATETIME: "DATETIME",
    FieldType.CHAR: "VARCHAR(1)",
    FieldType.STRING: "VARCHAR",
    FieldType.UUID: "VARCHAR(36)",
}

DEFAULT_STRING_SIZE = 256

# Types whose native column already carries its width.
UNSIZED_TYPES = frozenset({FieldType.UUID, FieldType.CHAR})


@dataclass(frozen=True)
class FieldSize:
    """Width and decimal places of a column; ``str()`` gives ``"10,2"`` or ``"10"``."""

    size: int = 0
    decimal: int = 0

    def __str__(self) -> str:
        if self.decimal > 0:
            return f"{self.size},{self.decimal}"
        return str(self.size)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: FieldType = FieldType.STRING
    size: FieldSize = field(default_factory=FieldSize)
    identity: bool = False
    key: bool = False
    unsigned: bool = False
    nullable: bool = False
    path: tuple[str, ...] = ()
    python_type: Any = field(default=None, compare=False, repr=False)
    # Dataclass types of the intermediate attributes along ``path``.
    parent_types: tuple[type, ...] = field(default=(), compare=False, repr=False)

    @property
    def attribute_path(self) -> tuple[str, ...]:
        """Attribute names walked from the entity to reach this column's value."""
        return self.path or (self.name,)

    def get_value(self, entity: Any) -> Any:
        target = entity
        for name in self.attribute_path:
            target = getattr(target, name)
            if target is None:
                return None
        return target

    def set_value(self, entity: Any, value: Any) -> None:
        """Assign the column value on ``entity``.

        A missing intermediate object is built from ``parent_types`` when
        there is a value to store; a None value leaves it missing.
        """
        *parents, leaf = self.attribute_path
        target = entity
        for depth, name in enumerate(parents):
            child = getattr(target, name)
            if child is None:
                if value is None or depth >= len(self.parent_types):
                    return
                try:
                    child = self.parent_types[depth]()
                except TypeError:
                    return
                setattr(target, name, child)
            target = child
        setattr(target, leaf, value)


RESERVED_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor("ID", FieldType.UUID, identity=True, key=True),
    FieldDescriptor("CreateDate", FieldType.DATETIME, key=True),
    FieldDescriptor("LastUpdate", FieldType.DATETIME, key=True),
    FieldDescriptor("DeleteDate", FieldType.DATETIME, nullable=True),
)

RESERVED_NAMES = frozenset(f.name for f in RESERVED_FIELDS)


@dataclass(frozen=True)
class TagOptions:
    """Parsed ``mud.column()`` annotation."""

    type: FieldType | None = None
    size: FieldSize = field(default_factory=FieldSize)
    identity: bool = False
    key: bool = False
    unsigned: bool | None = None


def _parse_int(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def parse_tag(tag: str) -> TagOptions:
    """Parse an annotation string.

    ``size:10,2`` is read as one pair: a bare number directly after a ``size``
    entry is its decimal part.
    """
    kind: FieldType | None = None
    major = minor = 0
    identity = key = False
    unsigned: bool | None = None

    last_key = ""
    for token in (tag or "").split(","):
        token = token.strip()
        if not token:
            continue
        if ":" not in token:
            if last_key == "size" and minor == 0:
                minor = _parse_int(token) or 0
            last_key = ""
            continue
        name, _, value = token.partition(":")
        name = name.strip().lower()
        value = value.strip()
        last_key = name
        if name == "type":
            kind = FieldType.parse(value) or kind
        elif name == "size":
            major = _parse_int(value) or 0
        elif name == "identity":
            identity = value.lower() == "true"
        elif name == "key":
            key = value.lower() == "true"
        elif name == "unsigned":
            unsigned = value.lower() == "true"

    return TagOptions(
        type=kind,
        size=FieldSize(major, minor),
        identity=identity,
        key=key,
        unsigned=unsigned,
    )


def infer_type(annotation: Any) -> FieldType:
    """Map a Python annotation to a semantic type; unknown types are strings."""
    if not isinstance(annotation, type):
        return FieldType.STRING
    # Order matters: bool is an int, Float32 is a float.
    if issubclass(annotation, bool):
        return FieldType.BOOL
    if issubclass(annotation, int):
        return FieldType.INT
    if issubclass(annotation, Float32):
        return FieldType.FLOAT
    if issubclass(annotation, float):
        return FieldType.DOUBLE
    if issubclass(annotation, Decimal):
        return FieldType.DECIMAL
    if issubclass(annotation, datetime):
        return FieldType.DATETIME
    if issubclass(annotation, uuid.UUID):
        return FieldType.UUID
    return FieldType.STRING


__all__ = [
    "FieldType",
    "FieldSize",
    "FieldDescriptor",
    "TagOptions",
    "COLUMN_TYPES",
    "DEFAULT_STRING_SIZE",
    "UNSIZED_TYPES",
    "RESERVED_FIELDS",
    "RESERVED_NAMES",
    "parse_tag",
    "infer_type",
]
