"""Unit tests for CompiledQuery debug interpolation."""

from __future__ import annotations

from fluentql.compile import MySQLAdapter, PostgresAdapter, SQLiteAdapter
from fluentql.query.compiled import CompiledQuery
from fluentql.query.raw import Raw


def test_raw_sql_quotes_strings():
    query = CompiledQuery("SELECT * FROM t WHERE name = ?", ("O'Brien",), SQLiteAdapter())
    assert query.raw_sql == "SELECT * FROM t WHERE name = 'O''Brien'"
    assert query.get_raw_sql() == query.raw_sql


def test_raw_sql_scalars():
    query = CompiledQuery("VALUES (?, ?, ?, ?)", (None, True, 3, 1.5), PostgresAdapter())
    assert query.raw_sql == "VALUES (NULL, 1, 3, 1.500000)"


def test_mysql_escapes_backslashes():
    query = CompiledQuery("SELECT ?", ("a\\b",), MySQLAdapter())
    assert query.raw_sql == "SELECT 'a\\\\b'"


def test_raw_and_sequence_bindings():
    query = CompiledQuery("SELECT ? FROM t WHERE id IN (?)", (Raw("NOW()"), [1, 2]), MySQLAdapter())
    assert query.raw_sql == "SELECT NOW() FROM t WHERE id IN (1, 2)"


def test_missing_bindings_leave_placeholders():
    query = CompiledQuery("SELECT ?, ?", (1,), MySQLAdapter())
    assert query.raw_sql == "SELECT 1, ?"


def test_question_marks_inside_literals_are_not_placeholders():
    query = CompiledQuery("SELECT * FROM t WHERE title = 'why?' AND id = ?", (5,), SQLiteAdapter())
    assert query.raw_sql == "SELECT * FROM t WHERE title = 'why?' AND id = 5"


def test_named_bindings():
    query = CompiledQuery("SELECT :name, :names", {"name": "x", "names": "y"}, SQLiteAdapter())
    assert query.raw_sql == "SELECT 'x', 'y'"


def test_accessors():
    query = CompiledQuery("SELECT 1", ())
    assert query.get_sql() == "SELECT 1"
    assert query.get_bindings() == ()
    assert str(query) == "SELECT 1"
    assert query.raw_sql == "SELECT 1"
