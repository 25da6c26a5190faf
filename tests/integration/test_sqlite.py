"""Integration tests: build → compile → execute against an in-memory SQLite DB.

Every test runs twice, once over the stdlib ``sqlite3`` driver and once over
the SQLAlchemy driver (skipped when SQLAlchemy is not installed).
"""
from __future__ import annotations

import pytest

from fluentql.config import ConnectionConfig
from fluentql.connection import Connection
from fluentql.drivers.sqlite import SQLiteDriver
from fluentql.errors import TransactionError
from fluentql.query.column import Column
from fluentql.query.raw import Raw
from fluentql.query.table import Table
from tests.fixtures import load_ddl

pytestmark = pytest.mark.integration

AUTHORS = [
    {"name": "Ann", "country": "NL"},
    {"name": "Bob", "country": "US"},
    {"name": "Cid", "country": None},
]
POSTS = [
    {"author_id": 1, "title": "Alpha", "status": "publish", "views": 10, "created_at": "2024-01-15 10:00:00"},
    {"author_id": 1, "title": "Beta", "status": "draft", "views": 0, "created_at": "2024-02-10 09:00:00"},
    {"author_id": 2, "title": "Gamma", "status": "publish", "views": 25, "created_at": "2023-12-31 23:00:00"},
    {"author_id": 2, "title": "Delta", "status": "publish", "views": 5, "created_at": "2024-02-20 12:00:00"},
]
TAGS = [
    {"post_id": 1, "label": "sql"},
    {"post_id": 1, "label": "python"},
    {"post_id": 3, "label": "db"},
]


def _driver(kind: str):
    if kind == "sqlite3":
        return SQLiteDriver()
    sqlalchemy = pytest.importorskip("sqlalchemy")
    from fluentql.drivers.sqlalchemy import SQLAlchemyDriver

    return SQLAlchemyDriver(sqlalchemy.create_engine("sqlite://"))


@pytest.fixture(params=["sqlite3", "sqlalchemy"])
def db(request) -> Connection:
    connection = Connection(_driver(request.param), ConnectionConfig(dialect="sqlite"))
    for statement in load_ddl().split(";"):
        if statement.strip():
            connection.driver.execute(statement)

    qb = connection.create_query_builder()
    assert qb.table("authors").insert(AUTHORS) == [1, 2, 3]
    assert qb.table("posts").insert(POSTS) == [1, 2, 3, 4]
    qb.table("tags").insert(TAGS)
    yield connection
    connection.close()


def _qb(db: Connection):
    return db.create_query_builder()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_where_and_order(db):
    titles = _qb(db).table("posts").where("status", "publish").order_by("views", "desc").pluck("title")
    assert titles == ["Gamma", "Alpha", "Delta"]


def test_row_shapes(db):
    row = _qb(db).table("posts").select("id", "title").where("id", 2).row()
    assert (row.id, row.title) == (2, "Beta")
    keyed = _qb(db).table("authors").select("id", "name").get("OBJECT_K")
    assert keyed[3].name == "Cid"


def test_join(db):
    rows = (
        _qb(db)
        .table("posts")
        .select("posts.title", "authors.name")
        .join("authors", "authors.id", "=", "posts.author_id")
        .where("authors.country", "US")
        .order_by("posts.id")
        .get("ARRAY_N")
    )
    assert rows == [("Gamma", "Bob"), ("Delta", "Bob")]


def test_left_join_keeps_unmatched_rows(db):
    names = (
        _qb(db)
        .table("authors")
        .left_join("posts", "posts.author_id", "=", "authors.id")
        .where_null("posts.id")
        .pluck("authors.name")
    )
    assert names == ["Cid"]


def test_nested_group(db):
    titles = (
        _qb(db)
        .table("posts")
        .where("status", "publish")
        .where(lambda q: q.where("views", ">", 20).or_where("author_id", 1))
        .order_by("id")
        .pluck("title")
    )
    assert titles == ["Alpha", "Gamma"]


def test_in_between_and_null(db):
    assert _qb(db).table("posts").where_in("id", [1, 3]).order_by("id").pluck("title") == ["Alpha", "Gamma"]
    assert _qb(db).table("posts").where_between("views", 5, 10).order_by("id").pluck("title") == ["Alpha", "Delta"]
    assert _qb(db).table("authors").where_null("country").pluck("name") == ["Cid"]
    assert _qb(db).table("authors").search("name", "o").pluck("name") == ["Bob"]


def test_subquery_and_exists(db):
    qb = _qb(db)
    us_authors = qb.table("authors").select("id").where("country", "US")
    assert qb.table("posts").where_in("author_id", us_authors).order_by("id").pluck("title") == ["Gamma", "Delta"]

    names = (
        qb.table("authors")
        .where_exists(lambda q: q.from_("posts").where_column("posts.author_id", "authors.id"))
        .order_by("id")
        .pluck("name")
    )
    assert names == ["Ann", "Bob"]


def test_date_filters(db):
    assert _qb(db).table("posts").where_year("created_at", 2024).count() == 3
    assert _qb(db).table("posts").where_month("created_at", 2).order_by("id").pluck("title") == ["Beta", "Delta"]
    between = _qb(db).table("posts").where_date_between("created_at", "2024-02-01", "2024-02-15")
    assert between.pluck("title") == ["Beta"]


def test_union(db):
    qb = _qb(db)
    first = qb.table("posts").select("title").where("id", 1)
    rows = first.union(qb.table("posts").select("title").where("id", 3), "all").get("ARRAY_N")
    assert sorted(rows) == [("Alpha",), ("Gamma",)]


def test_aggregates(db):
    def posts():
        return _qb(db).table("posts")

    assert posts().count() == 4
    assert posts().where("status", "publish").sum("views") == 40.0
    assert posts().avg("views") == 10.0
    assert posts().min("views") == 0.0
    assert posts().max("views") == 25.0


def test_group_by_having(db):
    rows = (
        _qb(db)
        .table("posts")
        .select("author_id", Raw("COUNT(*) AS total"))
        .where("status", "publish")
        .group_by("author_id")
        .having("total", ">", 1)
        .get("ARRAY_A")
    )
    assert rows == [{"author_id": 2, "total": 2}]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def test_update_and_delete(db):
    qb = _qb(db)
    changed = qb.table("posts").where("status", "draft").update({"status": "publish", "views": Raw("views + ?", [1])})
    assert changed == 1
    assert qb.table("posts").where("id", 2).value("views") == 1

    assert qb.table("posts").where("id", 4).delete() == 1
    assert qb.table("posts").count() == 3


def test_insert_ignore_and_replace(db):
    qb = _qb(db)
    assert qb.table("tags").insert_ignore({"post_id": 2, "label": "sql"}) is None
    assert qb.table("tags").count() == 3

    qb.table("tags").replace({"id": 3, "post_id": 3, "label": "databases"})
    assert qb.table("tags").where("id", 3).value("label") == "databases"


def test_failed_batch_insert_is_rolled_back(db):
    qb = _qb(db)
    with pytest.raises(TransactionError):
        qb.table("tags").insert([{"post_id": 2, "label": "new"}, {"post_id": 2, "label": "sql"}])
    assert qb.table("tags").count() == 3
    assert qb.table("tags").where("label", "new").doesnt_exist()


def test_transaction_commit_and_rollback(db):
    qb = _qb(db)
    qb.table("authors").transaction(lambda tx: tx.insert({"name": "Dee"}))
    assert qb.table("authors").count() == 4

    def fail(tx):
        tx.insert({"name": "Eve"})
        raise RuntimeError("abort")

    with pytest.raises(TransactionError):
        qb.table("authors").transaction(fail)
    assert qb.table("authors").where("name", "Eve").doesnt_exist()


def test_last_query_raw_sql(db):
    qb = _qb(db).table("posts").where("title", "Alpha")
    qb.get()
    assert qb.get_last_query().raw_sql == "SELECT * FROM posts WHERE title = 'Alpha'"


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------


def test_create_table(db):
    table = Table(db)
    columns = [
        Column("id", "integer").as_primary_key().with_auto_increment(),
        Column("level", "varchar", 16).as_index(),
        Column("message", "text", 1000).allow_null(),
    ]
    assert table.exists("logs") is False
    assert table.create("logs", columns) is True
    assert table.create_if_not_exists("logs", columns) is True

    assert _qb(db).table("logs").insert({"level": "info", "message": "hello"}) == 1
    assert _qb(db).table("logs").value("message") == "hello"
