"""Tests for mud.order."""

from __future__ import annotations

from mud.dialect import MSSQLDialect, SQLiteDialect
from mud.order import Order, OrderTerm, asc, desc


class TestOrder:
    def test_asc(self):
        assert str(asc("name")) == "`name` asc"

    def test_desc(self):
        assert str(desc("age")) == "`age` desc"

    def test_chain_joins_with_comma(self):
        assert str(asc("name").desc("age")) == "`name` asc, `age` desc"

    def test_terms(self):
        assert asc("a").desc("b").terms == (OrderTerm("a", True), OrderTerm("b", False))

    def test_empty(self):
        assert Order().is_empty()
        assert str(Order()) == ""

    def test_immutable(self):
        base = asc("name")
        base.desc("age")
        assert str(base) == "`name` asc"

    def test_equality(self):
        assert asc("a").desc("b") == asc("a").desc("b")
        assert asc("a") != desc("a")


class TestOrderRender:
    def test_mssql(self):
        assert asc("name").desc("age").render(MSSQLDialect()) == "[name] asc, [age] desc"

    def test_sqlite(self):
        assert desc("age").render(SQLiteDialect()) == '"age" desc'
