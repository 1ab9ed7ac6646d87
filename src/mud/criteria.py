"""Query-shaping criteria and argument normalisation.

Every query-producing ``Database`` operation accepts ``*criteria`` and
normalises it with ``build_criteria()``:

    ================================  ========================================
    first non-None argument           becomes
    ================================  ========================================
    ``Criteria``                      itself
    ``Where``                         ``Criteria(where=arg)``
    ``Order``                         ``Criteria(order=arg)``
    ``str`` that is a UUID            ``Criteria(where=equal("ID", arg))``
    any other ``str``                 raw WHERE text
    object with ``to_sql()``          raw WHERE text from ``to_sql()``
    anything else                     ``InvalidCriteriaError``
    ================================  ========================================

Unless ``include_deleted`` is set, rendering appends a ``DeleteDate IS NULL``
filter so soft-deleted rows stay out of ordinary queries.

Examples:
    >>> from mud.dialect import MySQLDialect
    >>> Criteria().where_string(MySQLDialect())
    'WHERE `DeleteDate` IS NULL'
    >>> Criteria(where=equal("Age", 30)).where_string(MySQLDialect())
    ' WHERE `Age` = 30 AND `DeleteDate` IS NULL'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Union

from mud.errors import InvalidCriteriaError
from mud.order import Order
from mud.protocols import SqlRenderable
from mud.where import Where, equal

if TYPE_CHECKING:
    from mud.dialect import Dialect

UUID_PATTERN = re.compile(
    r"^\s*[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\s*$",
    re.IGNORECASE,
)

WhereLike = Union[Where, str, None]
OrderLike = Union[Order, str, SqlRenderable, None]


@dataclass(frozen=True)
class Criteria:
    """Where/order/limit/offset for one query. Never mutated by the engine."""

    where: WhereLike = None
    order: OrderLike = None
    limit: int = 0
    offset: int = 0
    include_deleted: bool = False

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise InvalidCriteriaError("limit must be >= 0", value=self.limit)
        if self.offset < 0:
            raise InvalidCriteriaError("offset must be >= 0", value=self.offset)

    def has_order(self) -> bool:
        return bool(self._render_order_text(None))

    def page(self, limit: int, offset: int = 0) -> Criteria:
        """Copy with a different limit and offset."""
        return replace(self, limit=limit, offset=offset)

    def _render_where_text(self, dialect: Dialect) -> str:
        if isinstance(self.where, Where):
            return self.where.render(dialect.operators())
        if isinstance(self.where, str):
            return self.where.strip()
        return ""

    def _render_order_text(self, dialect: Dialect | None) -> str:
        order = self.order
        if order is None:
            return ""
        if isinstance(order, Order):
            if dialect is None:
                return str(order)
            return order.render(dialect)
        if isinstance(order, str):
            return order.strip()
        return order.to_sql().strip()

    def where_string(self, dialect: Dialect) -> str:
        text = self._render_where_text(dialect)
        result = f" WHERE {text}" if text else ""
        if not self.include_deleted:
            deleted = dialect.identity_string("DeleteDate")
            if result:
                result += f" AND {deleted} IS NULL"
            else:
                result = f"WHERE {deleted} IS NULL"
        return result

    def order_string(self, dialect: Dialect) -> str:
        text = self._render_order_text(dialect)
        return f" ORDER BY {text}" if text else ""

    def limit_string(self, dialect: Dialect) -> str:
        return dialect.limit_string(self)

    def offset_string(self, dialect: Dialect) -> str:
        return dialect.offset_string(self)

    def to_sql(self, dialect: Dialect) -> str:
        """The full query tail: where, order and pagination."""
        return dialect.build_query(
            self.where_string(dialect),
            self.order_string(dialect),
            self.limit_string(dialect),
            self.offset_string(dialect),
        )


def build_criteria(*args: Any) -> Criteria:
    """Normalise caller arguments into one ``Criteria``.

    Raises:
        InvalidCriteriaError: If the first non-None argument has an
            unrecognised shape.
    """
    for arg in args:
        if arg is None:
            continue
        if isinstance(arg, Criteria):
            return arg
        if isinstance(arg, Where):
            return Criteria(where=arg)
        if isinstance(arg, Order):
            return Criteria(order=arg)
        if isinstance(arg, str):
            if UUID_PATTERN.match(arg):
                return Criteria(where=equal("ID", arg.strip()))
            return Criteria(where=arg)
        if isinstance(arg, SqlRenderable):
            return Criteria(where=arg.to_sql())
        raise InvalidCriteriaError(
            f"Unsupported criteria type: {type(arg).__name__}", value=arg
        )
    return Criteria()


__all__ = ["Criteria", "build_criteria", "UUID_PATTERN"]
