"""Ordering expressions.

An ``Order`` is an immutable list of ``(field, ascending)`` terms built with
``asc()``/``desc()`` chains::

    >>> str(asc("name").desc("age"))
    '`name` asc, `age` desc'

``str()`` renders with backtick quoting; ``render(dialect)`` quotes through
the active dialect so the same chain works on every backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mud.dialect import Dialect


@dataclass(frozen=True)
class OrderTerm:
    field: str
    ascending: bool = True

    @property
    def direction(self) -> str:
        return "asc" if self.ascending else "desc"


class Order:
    """An immutable chain of ordering terms."""

    __slots__ = ("_terms",)

    def __init__(self, terms: tuple[OrderTerm, ...] = ()):
        self._terms = tuple(terms)

    @property
    def terms(self) -> tuple[OrderTerm, ...]:
        return self._terms

    def asc(self, field: str) -> Order:
        return Order(self._terms + (OrderTerm(field, True),))

    def desc(self, field: str) -> Order:
        return Order(self._terms + (OrderTerm(field, False),))

    def is_empty(self) -> bool:
        return not self._terms

    def render(self, dialect: Dialect) -> str:
        return ", ".join(
            f"{dialect.identity_string(term.field)} {term.direction}" for term in self._terms
        )

    def __str__(self) -> str:
        return ", ".join(f"`{term.field}` {term.direction}" for term in self._terms)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Order):
            return NotImplemented
        return self._terms == other._terms

    def __hash__(self) -> int:
        return hash(self._terms)

    def __repr__(self) -> str:
        return f"Order({str(self)!r})"


def asc(field: str) -> Order:
    return Order().asc(field)


def desc(field: str) -> Order:
    return Order().desc(field)


__all__ = ["Order", "OrderTerm", "asc", "desc"]
