"""Composable WHERE predicates.

A ``Where`` is a chain of nodes. Each node is either a single comparison
(``Clause``) or a parenthesised sub-chain, and carries the conjunction that
joins it to the *next* node. Nothing is bound to a backend until
``render(operators)`` is called with a dialect's operator template table.

Manifesto:
    Filters are built by application code and rendered by the ORM:

    - **Backend-free:** a chain knows field names and values, not quoting
    - **Permissive:** a clause that cannot render (wrong arity, empty IN,
      unconvertible value) renders to ``""`` and drops out of the chain
    - **Immutable:** ``and_``/``or_`` return new chains

Architecture:
    ::

        equal("Age", 25).and_(like("Name", "A%")).or_(is_null("Email"))

        [Clause Age = 25 | AND] -> [Clause Name LIKE | OR] -> [Clause Email IS NULL]

        render(mysql.operators())
        -> "`Age` = 25 AND `Name` LIKE 'A%' OR `Email` IS NULL"

Operator table:
    Fourteen ``str.format`` templates: seven positive forms indexed by
    ``Operator`` followed by the seven negated forms in the same order. A
    negated clause uses ``operator + len(operators) // 2``.

Examples:
    >>> from mud.dialect import MySQLDialect
    >>> ops = MySQLDialect().operators()
    >>> equal("Name", "O'Connor").render(ops)
    "`Name` = 'O''Connor'"
    >>> between("amount", 7, 3).render(ops)
    '`amount` BETWEEN 3 AND 7'
    >>> in_("amount", []).render(ops)
    ''

Tags:
    where, predicate, query-builder, sql, mud
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any, Union

from mud.logging import get_logger
from mud.values import make_value

logger = get_logger(__name__)


class Operator(IntEnum):
    """Base index of each comparison in a dialect operator table."""

    EQUAL = 0
    GREATER = 1
    LESS = 2
    LIKE = 3
    IN = 4
    BETWEEN = 5
    IS_NULL = 6


class Conjunction(str, Enum):
    """Joins a node to the next one in a chain."""

    AND = " AND "
    OR = " OR "


@dataclass(frozen=True)
class Clause:
    """One comparison: field, operator, negation flag and operand values."""

    field: str
    operator: Operator
    negated: bool = False
    values: tuple[Any, ...] = ()

    def arity(self) -> int:
        if self.operator is Operator.BETWEEN:
            return 2
        if self.operator is Operator.IN:
            return len(self.values)
        if self.operator is Operator.IS_NULL:
            return 0
        return 1

    def render(self, operators: Sequence[str]) -> str:
        """Render with a dialect operator table, or ``""`` when not renderable."""
        code = int(self.operator)
        if self.negated:
            code += len(operators) // 2

        count = self.arity()
        if self.operator is Operator.IN and count == 0:
            return ""
        if len(self.values) < count:
            return ""

        literals: list[str] = []
        for value in self.values[:count]:
            literal = make_value(value)
            if literal is None:
                logger.debug("clause_dropped", field=self.field, value_type=type(value).__name__)
                return ""
            literals.append(literal)

        template = operators[code]
        if self.operator is Operator.IN:
            return template.format(self.field, ",".join(literals))
        if self.operator is Operator.BETWEEN:
            low, high = literals
            # Lexicographic on the rendered literals, not a typed comparison.
            if low > high:
                low, high = high, low
            return template.format(self.field, low, high)
        if self.operator is Operator.IS_NULL:
            return template.format(self.field)
        return template.format(self.field, literals[0])


@dataclass(frozen=True)
class _Node:
    item: Union[Clause, "Where"]
    conjunction: Conjunction = Conjunction.AND

    def render(self, operators: Sequence[str]) -> str:
        if isinstance(self.item, Where):
            inner = self.item.render(operators)
            return f"({inner})" if inner else ""
        return self.item.render(operators)


class Where:
    """An immutable chain of predicate nodes."""

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Iterable[_Node] = ()):
        self._nodes: tuple[_Node, ...] = tuple(nodes)

    @classmethod
    def of(cls, clause: Clause) -> Where:
        return cls((_Node(clause),))

    @property
    def clauses(self) -> tuple[Clause | Where, ...]:
        return tuple(node.item for node in self._nodes)

    @property
    def conjunctions(self) -> tuple[Conjunction, ...]:
        return tuple(node.conjunction for node in self._nodes)

    def is_empty(self) -> bool:
        return not self._nodes

    def _join(self, other: Where, conjunction: Conjunction) -> Where:
        if not isinstance(other, Where):
            raise TypeError(f"cannot combine Where with {type(other).__name__}")
        if not self._nodes:
            return other
        if not other._nodes:
            return self
        nodes = list(self._nodes)
        nodes[-1] = replace(nodes[-1], conjunction=conjunction)
        if len(other._nodes) == 1:
            nodes.append(other._nodes[0])
        else:
            nodes.append(_Node(other))
        return Where(nodes)

    def and_(self, other: Where) -> Where:
        return self._join(other, Conjunction.AND)

    def or_(self, other: Where) -> Where:
        return self._join(other, Conjunction.OR)

    __and__ = and_
    __or__ = or_

    def render(self, operators: Sequence[str]) -> str:
        """Render the chain; nodes that render empty are skipped with their conjunction."""
        parts = [
            (text, node.conjunction)
            for node in self._nodes
            if (text := node.render(operators))
        ]
        out = ""
        for i, (text, conjunction) in enumerate(parts):
            out += text
            if i < len(parts) - 1:
                out += conjunction.value
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Where):
            return NotImplemented
        return self._nodes == other._nodes

    def __hash__(self) -> int:
        return hash(self._nodes)

    def __repr__(self) -> str:
        return f"Where({list(self._nodes)!r})"


def _as_values(values: Any) -> tuple[Any, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return (values,)
    return tuple(values)


def _clause(field: str, operator: Operator, negated: bool, *values: Any) -> Where:
    return Where.of(Clause(field, operator, negated, tuple(values)))


# -- Constructors -------------------------------------------------------------


def equal(field: str, value: Any) -> Where:
    return _clause(field, Operator.EQUAL, False, value)


def not_equal(field: str, value: Any) -> Where:
    return _clause(field, Operator.EQUAL, True, value)


def greater(field: str, value: Any) -> Where:
    return _clause(field, Operator.GREATER, False, value)


def not_greater(field: str, value: Any) -> Where:
    """``field <= value``."""
    return _clause(field, Operator.GREATER, True, value)


def less(field: str, value: Any) -> Where:
    return _clause(field, Operator.LESS, False, value)


def not_less(field: str, value: Any) -> Where:
    """``field >= value``."""
    return _clause(field, Operator.LESS, True, value)


def like(field: str, pattern: str) -> Where:
    return _clause(field, Operator.LIKE, False, pattern)


def not_like(field: str, pattern: str) -> Where:
    return _clause(field, Operator.LIKE, True, pattern)


def starts_with(field: str, prefix: str) -> Where:
    return like(field, f"{prefix}%")


def ends_with(field: str, suffix: str) -> Where:
    return like(field, f"%{suffix}")


def contains(field: str, text: str) -> Where:
    return like(field, f"%{text}%")


def in_(field: str, values: Any) -> Where:
    """Membership test; an empty list renders to ``""``."""
    return _clause(field, Operator.IN, False, *_as_values(values))


def not_in(field: str, values: Any) -> Where:
    return _clause(field, Operator.IN, True, *_as_values(values))


def between(field: str, low: Any, high: Any) -> Where:
    return _clause(field, Operator.BETWEEN, False, low, high)


def not_between(field: str, low: Any, high: Any) -> Where:
    return _clause(field, Operator.BETWEEN, True, low, high)


def is_null(field: str) -> Where:
    return _clause(field, Operator.IS_NULL, False)


def not_null(field: str) -> Where:
    return _clause(field, Operator.IS_NULL, True)


__all__ = [
    "Operator",
    "Conjunction",
    "Clause",
    "Where",
    "equal",
    "not_equal",
    "greater",
    "not_greater",
    "less",
    "not_less",
    "like",
    "not_like",
    "starts_with",
    "ends_with",
    "contains",
    "in_",
    "not_in",
    "between",
    "not_between",
    "is_null",
    "not_null",
]
