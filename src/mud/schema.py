"""Schema reflection: entity type -> ordered column descriptors -> DDL.

Manifesto:
    Annotate once, map automatically. An entity declares its columns with
    ``mud.column()``; the reflector derives the descriptor table a single
    time per table name and the engine reuses it for DDL, INSERT/UPDATE
    building and row population.

    - **Reserved first:** ID, CreateDate, LastUpdate, DeleteDate always lead
    - **Explicit wins:** ``SchemaReflector.register()`` or a
      ``__mud_fields__()`` classmethod bypass reflection entirely
    - **Owned cache:** one reflector per ``Database``, guarded by a lock

Architecture:
    ::

        @dataclass class Person(Model)
              │
              ▼  reflect_fields()            (dataclasses.fields + type hints)
        ┌──────────────────────────────────────────────────────────┐
        │ ID uuid key identity │ CreateDate datetime key │ ...     │
        │ Name string │ Age int key │ Email string nullable        │
        └──────────────────────────────────────────────────────────┘
              │
              ▼  SchemaReflector.create_statements(Person, dialect)
        CREATE TABLE IF NOT EXISTS "Person" ("ID" VARCHAR(36) NOT NULL, ...);
        CREATE INDEX "Person_ID_Idx" ON "Person"("ID");
        CREATE INDEX "Person_Age_Idx" ON "Person"("Age");

Examples:
    >>> reflector = SchemaReflector()
    >>> [f.name for f in reflector.describe(Person)]
    ['ID', 'CreateDate', 'LastUpdate', 'DeleteDate', 'Name', 'Age', 'Email']

Guardrails:
    ❌ DON'T: Call reflect_fields() per query
    ✅ DO: Go through SchemaReflector.describe(), it caches per table name

Tags:
    schema, reflection, ddl, dataclasses, mud

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import dataclasses
import threading
import types
import typing
from collections.abc import Iterable
from typing import Any, Union

from mud.errors import SchemaError
from mud.fields import (
    RESERVED_FIELDS,
    RESERVED_NAMES,
    FieldDescriptor,
    infer_type,
    parse_tag,
)
from mud.logging import get_logger
from mud.model import COLUMN_METADATA_KEY, table_name

if typing.TYPE_CHECKING:
    from mud.dialect import Dialect

logger = get_logger(__name__)


def _entity_class(entity: Any) -> type:
    return entity if isinstance(entity, type) else type(entity)


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """``X | None`` -> ``(X, True)``; anything else -> ``(annotation, False)``."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(annotation)
        remaining = [arg for arg in args if arg is not type(None)]
        nullable = len(remaining) < len(args)
        if len(remaining) == 1:
            return remaining[0], nullable
        return annotation, nullable
    return annotation, False


def with_reserved(descriptors: Iterable[FieldDescriptor]) -> list[FieldDescriptor]:
    """Prepend any reserved descriptor missing from ``descriptors``."""
    declared = list(descriptors)
    names = {d.name for d in declared}
    return [f for f in RESERVED_FIELDS if f.name not in names] + declared


def _walk(
    cls: type,
    prefix: tuple[str, ...],
    parents: tuple[type, ...] = (),
    optional: bool = False,
) -> list[FieldDescriptor]:
    """Descriptors for ``cls``.

    ``optional`` marks every column nullable: an enclosing nested attribute
    may be None.
    """
    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError) as exc:
        raise SchemaError(
            f"Cannot resolve annotations of {cls.__name__}: {exc}", cause=exc
        ).with_context(table=cls.__name__) from exc

    result: list[FieldDescriptor] = []
    for f in dataclasses.fields(cls):
        if not prefix and f.name in RESERVED_NAMES:
            continue
        annotation, nullable = _unwrap_optional(hints.get(f.name, f.type))
        path = prefix + (f.name,)

        if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
            result.extend(_walk(annotation, path, parents + (annotation,), optional or nullable))
            continue
        if COLUMN_METADATA_KEY not in f.metadata:
            continue

        options = parse_tag(f.metadata[COLUMN_METADATA_KEY])
        result.append(
            FieldDescriptor(
                name=f.name,
                type=options.type or infer_type(annotation),
                size=options.size,
                identity=options.identity,
                key=options.key,
                unsigned=bool(options.unsigned),
                nullable=nullable or optional,
                path=path,
                python_type=annotation if isinstance(annotation, type) else None,
                parent_types=parents,
            )
        )
    return result


def reflect_fields(entity_type: Any) -> list[FieldDescriptor]:
    """Derive the ordered descriptor list for an entity type or instance.

    Raises:
        SchemaError: If the type is not a dataclass or its annotations
            cannot be resolved.
    """
    cls = _entity_class(entity_type)
    declared = getattr(cls, "__mud_fields__", None)
    if callable(declared):
        return with_reserved(declared())
    if not dataclasses.is_dataclass(cls):
        raise SchemaError(f"{cls.__name__} is not a dataclass").with_context(table=table_name(cls))
    return list(RESERVED_FIELDS) + _walk(cls, ())


class SchemaReflector:
    """Per-``Database`` cache of descriptor tables, keyed by table name."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._fields: dict[str, tuple[FieldDescriptor, ...]] = {}

    def register(self, entity_type: Any, descriptors: Iterable[FieldDescriptor]) -> None:
        """Install a caller-declared descriptor list for ``entity_type``."""
        name = table_name(entity_type)
        with self._lock:
            self._fields[name] = tuple(with_reserved(descriptors))

    def describe(self, entity_type: Any) -> tuple[FieldDescriptor, ...]:
        name = table_name(entity_type)
        with self._lock:
            cached = self._fields.get(name)
            if cached is None:
                cached = tuple(reflect_fields(entity_type))
                self._fields[name] = cached
                logger.debug("fields_reflected", table=name, columns=len(cached))
            return cached

    def is_described(self, entity_type: Any) -> bool:
        with self._lock:
            return table_name(entity_type) in self._fields

    def field_map(self, entity_type: Any) -> dict[str, FieldDescriptor]:
        """Descriptors keyed by lower-cased column name."""
        return {f.name.lower(): f for f in self.describe(entity_type)}

    def create_statements(self, entity_type: Any, dialect: Dialect) -> list[str]:
        """One CREATE TABLE plus one CREATE INDEX per key column."""
        fields = self.describe(entity_type)
        name = table_name(entity_type)
        table = dialect.table_identity(name)
        columns = ", ".join(dialect.column_definition(f) for f in fields)

        statements = [dialect.table_create().format(name=name, table=table, columns=columns)]
        prefix = name.replace(".", "_")
        template = dialect.index_create()
        for f in fields:
            if f.key:
                statements.append(template.format(prefix=prefix, field=f.name, table=table))
        return statements

    def clear(self) -> None:
        with self._lock:
            self._fields.clear()


__all__ = [
    "SchemaReflector",
    "reflect_fields",
    "with_reserved",
]
