"""Unit tests for WHERE / HAVING / JOIN criteria and builder state."""

from __future__ import annotations

import enum

import pytest

from fluentql.config import ConnectionConfig
from fluentql.connection import Connection
from fluentql.errors import ValidationError
from fluentql.events import FILTER_TABLE_PREFIX
from fluentql.query.builder import QueryBuilder
from fluentql.query.raw import Raw
from fluentql.query.statements import NestedGroup
from tests.fixtures import RecordingDriver


class Status(enum.Enum):
    PUBLISH = "publish"
    DRAFT = "draft"


class Slug:
    def __init__(self, text: str) -> None:
        self.text = text

    def __str__(self) -> str:
        return self.text.lower().replace(" ", "-")


def _sql(builder: QueryBuilder) -> tuple[str, tuple]:
    compiled = builder.get_query()
    return compiled.sql, compiled.bindings


# ---------------------------------------------------------------------------
# WHERE family
# ---------------------------------------------------------------------------


def test_where_operator_form(builder):
    sql, bindings = _sql(builder.table("t").where("age", ">=", 18))
    assert sql == "SELECT * FROM t WHERE age >= ?"
    assert bindings == (18,)


def test_where_chain_joiners(builder):
    sql, bindings = _sql(
        builder.table("t").where("a", 1).or_where("b", 2).where_not("c", 3).or_where_not("d", 4)
    )
    assert sql == "SELECT * FROM t WHERE a = ? OR b = ? AND NOT c = ? OR NOT d = ?"
    assert bindings == (1, 2, 3, 4)


def test_first_negated_condition_keeps_not(builder):
    sql, _ = _sql(builder.table("t").where_not("a", 1))
    assert sql == "SELECT * FROM t WHERE NOT a = ?"


def test_first_or_condition_drops_joiner(builder):
    sql, _ = _sql(builder.table("t").or_where("a", 1))
    assert sql == "SELECT * FROM t WHERE a = ?"


def test_and_where_is_where(builder):
    sql, _ = _sql(builder.table("t").where("a", 1).and_where("b", 2))
    assert sql == "SELECT * FROM t WHERE a = ? AND b = ?"


def test_where_bool_is_bound_as_int(builder):
    _, bindings = _sql(builder.table("t").where("active", True))
    assert bindings == (1,)


def test_where_raw(builder):
    sql, bindings = _sql(builder.table("t").where("a", 1).where_raw("b > ? OR c < ?", [2, 3]))
    assert sql == "SELECT * FROM t WHERE a = ? AND b > ? OR c < ?"
    assert bindings == (1, 2, 3)


def test_where_in_family(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where_in("id", [1, 2, 3])
        .where_not_in("status", ("x",))
        .or_where_in("k", [4])
        .or_where_not_in("j", [5, 6])
    )
    assert sql == (
        "SELECT * FROM t WHERE id IN (?, ?, ?) AND status NOT IN (?) "
        "OR k IN (?) OR j NOT IN (?, ?)"
    )
    assert bindings == (1, 2, 3, "x", 4, 5, 6)


def test_empty_in_lists_become_constant_predicates(builder):
    sql, bindings = _sql(builder.table("t").where_in("id", []).or_where_not_in("k", ()).where("a", 1))
    assert sql == "SELECT * FROM t WHERE 0 = 1 OR 1 = 1 AND a = ?"
    assert bindings == (1,)


def test_where_in_subquery(builder):
    inner = builder.table("x").select("id").where("k", 1)
    sql, bindings = _sql(builder.table("t").where_in("id", inner))
    assert sql == "SELECT * FROM t WHERE id IN (SELECT id FROM x WHERE k = ?)"
    assert bindings == (1,)


def test_where_between_family(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where_between("age", 18, 30)
        .where_not_between("score", 1, 2)
        .or_where_between("rank", 3, 4)
    )
    assert sql == (
        "SELECT * FROM t WHERE age BETWEEN ? AND ? AND score NOT BETWEEN ? AND ? "
        "OR rank BETWEEN ? AND ?"
    )
    assert bindings == (18, 30, 1, 2, 3, 4)


def test_where_null_family(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where_null("a")
        .where_not_null("b")
        .or_where_null("c")
        .or_where_not_null("d")
    )
    assert sql == "SELECT * FROM t WHERE a IS NULL AND b IS NOT NULL OR c IS NULL OR d IS NOT NULL"
    assert bindings == ()


def test_like_family(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where_like("a", "x%")
        .where_not_like("b", "%y")
        .where_starts_with("c", "pre")
        .search("d", "mid")
    )
    assert sql == "SELECT * FROM t WHERE a LIKE ? AND b NOT LIKE ? AND c LIKE ? AND d LIKE ?"
    assert bindings == ("x%", "%y", "pre%", "%mid%")


def test_where_exists(builder):
    sql, bindings = _sql(
        builder.table("posts").where_exists(
            lambda q: q.from_("comments").where_column("comments.post_id", "posts.id").where("ok", 1)
        )
    )
    assert sql == (
        "SELECT * FROM posts WHERE EXISTS "
        "(SELECT * FROM comments WHERE comments.post_id = posts.id AND ok = ?)"
    )
    assert bindings == (1,)


def test_where_column_list_form(builder):
    sql, bindings = _sql(builder.table("t").where_column([("a", "b"), ("c", ">", "d")]))
    assert sql == "SELECT * FROM t WHERE a = b AND c > d"
    assert bindings == ()


def test_where_date_parts_mysql(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where_year("created_at", 2024)
        .where_month("created_at", ">", 3)
        .where_date("created_at", "2024-05-01")
    )
    assert sql == (
        "SELECT * FROM t WHERE YEAR(created_at) = ? AND MONTH(created_at) > ? "
        "AND DATE(created_at) = ?"
    )
    assert bindings == (2024, 3, "2024-05-01")


@pytest.mark.parametrize(
    ("dialect", "expected"),
    [
        ("sqlite", "CAST(strftime('%Y', created_at) AS INTEGER) = ?"),
        ("postgres", "EXTRACT(YEAR FROM created_at) = ?"),
    ],
)
def test_where_year_per_dialect(dialect, expected):
    connection = Connection(RecordingDriver(), ConnectionConfig(dialect=dialect))
    sql, _ = _sql(connection.create_query_builder().table("t").where_year("created_at", 2024))
    assert sql == f"SELECT * FROM t WHERE {expected}"


def test_where_date_between(builder):
    sql, bindings = _sql(builder.table("t").where_date_between("created_at", "2024-01-01", "2024-01-31"))
    assert sql == "SELECT * FROM t WHERE created_at BETWEEN CAST(? AS DATE) AND CAST(? AS DATE)"
    assert bindings == ("2024-01-01", "2024-01-31")


def test_where_date_not_between_sqlite():
    connection = Connection(RecordingDriver(), ConnectionConfig(dialect="sqlite"))
    builder = connection.create_query_builder().table("t")
    sql, _ = _sql(builder.where_date_not_between("d", "2024-01-01", "2024-02-01"))
    assert sql == "SELECT * FROM t WHERE d NOT BETWEEN DATE(?) AND DATE(?)"


def test_enum_and_str_values_are_normalized(builder):
    _, bindings = _sql(builder.table("t").where("status", Status.PUBLISH).where("slug", Slug("Hello World")))
    assert bindings == ("publish", "hello-world")


# ---------------------------------------------------------------------------
# Nested groups
# ---------------------------------------------------------------------------


def test_nested_group(builder):
    sql, bindings = _sql(
        builder.table("t").where("a", 1).where(lambda q: q.where("b", 2).or_where("c", 3))
    )
    assert sql == "SELECT * FROM t WHERE a = ? AND (b = ? OR c = ?)"
    assert bindings == (1, 2, 3)


def test_nested_group_as_or_and_deeper(builder):
    sql, bindings = _sql(
        builder.table("t")
        .where("a", 1)
        .or_where(lambda q: q.where("b", 2).where(lambda inner: inner.where("c", 3).or_where_null("d")))
    )
    assert sql == "SELECT * FROM t WHERE a = ? OR (b = ? AND (c = ? OR d IS NULL))"
    assert bindings == (1, 2, 3)


def test_nested_callback_runs_once(builder):
    calls = []

    def group(q):
        calls.append(q)
        q.where("b", 2)

    query = builder.table("t").where(group)
    query.get_query()
    query.get_query()
    assert len(calls) == 1
    entry = query.get_statements().wheres[0]
    assert isinstance(entry.key, NestedGroup)
    assert entry.key.conditions[0].key == "b"


# ---------------------------------------------------------------------------
# HAVING
# ---------------------------------------------------------------------------


def test_having_forms(builder):
    sql, bindings = _sql(
        builder.table("t")
        .select("status")
        .group_by("status", ["kind"])
        .having("total", ">", 5)
        .or_having("status", "x")
        .having_raw("COUNT(id) < ?", [9])
    )
    assert sql == (
        "SELECT status FROM t GROUP BY status, kind "
        "HAVING total > ? OR status = ? AND COUNT(id) < ?"
    )
    assert bindings == (5, "x", 9)


# ---------------------------------------------------------------------------
# JOIN
# ---------------------------------------------------------------------------


def test_join_variants(builder):
    sql, _ = _sql(
        builder.table("posts")
        .join("users", "users.id", "=", "posts.author_id")
        .left_join("meta", "meta.post_id", "=", "posts.id")
        .right_join("cats", "cats.id", "=", "posts.cat_id")
        .inner_join("tags", "tags.post_id", "=", "posts.id")
        .cross_join("calendar")
    )
    assert sql == (
        "SELECT * FROM posts JOIN users ON users.id = posts.author_id "
        "LEFT JOIN meta ON meta.post_id = posts.id "
        "RIGHT JOIN cats ON cats.id = posts.cat_id "
        "INNER JOIN tags ON tags.post_id = posts.id "
        "CROSS JOIN calendar"
    )


def test_join_with_callback_and_raw_value(builder):
    sql, bindings = _sql(
        builder.table("posts").join(
            "meta",
            lambda j: j.on("meta.post_id", "=", "posts.id").or_on("meta.k", "=", Raw("?", ["x"])),
        )
    )
    assert sql == "SELECT * FROM posts JOIN meta ON meta.post_id = posts.id OR meta.k = ?"
    assert bindings == ("x",)


def test_join_table_alias_tuple(builder):
    sql, _ = _sql(builder.table("posts").join(("users", "u"), "u.id", "=", "posts.author_id"))
    assert sql == "SELECT * FROM posts JOIN users AS u ON u.id = posts.author_id"


def test_join_using(builder):
    sql, _ = _sql(builder.table("posts").join_using("tags", ["post_id", "site_id"], "left"))
    assert sql == "SELECT * FROM posts LEFT JOIN tags USING (post_id, site_id)"


def test_join_bindings_precede_where(builder):
    _, bindings = _sql(
        builder.table("posts")
        .where("a", 1)
        .join("meta", lambda j: j.on("meta.k", "=", Raw("?", ["k"])))
    )
    assert bindings == ("k", 1)


# ---------------------------------------------------------------------------
# UNION
# ---------------------------------------------------------------------------


def test_union_chain(builder):
    a = builder.table("a").where("x", 1)
    b = builder.table("b").where("y", 2)
    c = builder.table("c").where("z", 3)
    sql, bindings = _sql(a.union(b).union(c, "all"))
    assert sql == (
        "(SELECT * FROM a WHERE x = ?) UNION (SELECT * FROM b WHERE y = ?) "
        "UNION ALL (SELECT * FROM c WHERE z = ?)"
    )
    assert bindings == (1, 2, 3)


def test_union_flattens_member_unions(builder):
    a = builder.table("a").where("x", 1)
    b = builder.table("b").where("y", 2)
    c = builder.table("c").where("z", 3)
    b.union(c, "distinct")
    sql, bindings = _sql(a.union(b))
    assert sql == (
        "(SELECT * FROM a WHERE x = ?) UNION DISTINCT (SELECT * FROM c WHERE z = ?) "
        "UNION (SELECT * FROM b WHERE y = ?)"
    )
    assert "((" not in sql
    assert bindings == (1, 3, 2)
    assert len(b.get_statements().unions) == 1


def test_union_captures_snapshot(builder):
    a = builder.table("a")
    b = builder.table("b").where("y", 2)
    a.union(b)
    b.where("late", 9)
    sql, bindings = _sql(a)
    assert sql == "(SELECT * FROM a) UNION (SELECT * FROM b WHERE y = ?)"
    assert bindings == (2,)


def test_sqlite_union_members_are_bare():
    builder = Connection(RecordingDriver(), ConnectionConfig(dialect="sqlite")).create_query_builder()
    query = builder.table("a").union(builder.table("b"), "distinct").union(builder.table("c"), "all")
    sql, _ = _sql(query)
    assert sql == "SELECT * FROM a UNION SELECT * FROM b UNION ALL SELECT * FROM c"


def test_sqlite_wraps_ordered_or_limited_union_members():
    builder = Connection(RecordingDriver(), ConnectionConfig(dialect="sqlite")).create_query_builder()
    latest = builder.table("b").order_by("id", "desc").limit(2)
    sql, _ = _sql(builder.table("a").union(latest, "all"))
    assert sql == "SELECT * FROM a UNION ALL SELECT * FROM (SELECT * FROM b ORDER BY id DESC LIMIT 2)"


def test_union_rejects_unknown_type(builder):
    with pytest.raises(ValidationError) as excinfo:
        builder.table("a").union(builder.table("b"), "sideways")
    assert excinfo.value.code == "INVALID_UNION"


# ---------------------------------------------------------------------------
# Table prefix
# ---------------------------------------------------------------------------


def _prefixed(prefix="wp_", table_prefix=True) -> Connection:
    return Connection(RecordingDriver(prefix=prefix), ConnectionConfig(table_prefix=table_prefix))


def test_table_prefix_applies_to_tables_and_qualified_columns():
    builder = _prefixed().create_query_builder()
    sql, _ = _sql(
        builder.table("posts")
        .select("posts.title", "id")
        .join("users", "users.id", "=", "posts.author_id")
        .where("posts.id", 1)
    )
    assert sql == (
        "SELECT wp_posts.title, id FROM wp_posts "
        "JOIN wp_users ON wp_users.id = wp_posts.author_id WHERE wp_posts.id = ?"
    )


def test_table_prefix_from_config_string():
    connection = _prefixed(prefix="", table_prefix="app_")
    assert connection.table_prefix == "app_"
    assert connection.driver.get_prefix() == "app_"
    sql, _ = _sql(connection.create_query_builder().table("posts"))
    assert sql == "SELECT * FROM app_posts"


def test_table_prefix_disabled_by_default(builder):
    assert builder.get_connection().table_prefix is None
    sql, _ = _sql(builder.table("posts"))
    assert sql == "SELECT * FROM posts"


def test_table_prefix_filter_rewrites_prefix():
    connection = _prefixed()
    connection.hooks.add_filter(FILTER_TABLE_PREFIX, lambda prefix: "tenant_")
    sql, _ = _sql(connection.create_query_builder().table("posts"))
    assert sql == "SELECT * FROM tenant_posts"


def test_raw_tables_are_never_prefixed():
    builder = _prefixed().create_query_builder()
    sql, _ = _sql(builder.table(Raw("(SELECT 1) AS one")))
    assert sql == "SELECT * FROM (SELECT 1) AS one"


# ---------------------------------------------------------------------------
# Overwrite mode and columns
# ---------------------------------------------------------------------------


def test_overwrite_mode_replaces_repeated_clauses(builder):
    query = builder.table("t").set_overwrite_enabled()
    assert query.is_overwrite_enabled()
    query.select("a").select("b").where("a", 1).where("a", 2).order_by("a").order_by("a", "DESC")
    query.group_by("x").group_by("y")
    sql, bindings = _sql(query)
    assert sql == "SELECT b FROM t WHERE a = ? GROUP BY y ORDER BY a DESC"
    assert bindings == (2,)


def test_without_overwrite_clauses_accumulate(builder):
    sql, bindings = _sql(builder.table("t").select("a").select("b").where("a", 1).where("a", 2))
    assert sql == "SELECT a, b FROM t WHERE a = ? AND a = ?"
    assert bindings == (1, 2)


def test_get_columns(builder):
    query = builder.table("posts").select("id", "posts.title", {"COUNT(*)": "total"}, "t.*")
    assert query.get_columns() == {"id": "id", "title": "posts.title", "total": "COUNT(*)"}


def test_table_without_args_clears_tables(builder):
    query = builder.table("t")
    query.table()
    assert query.get_statements().tables is None
    assert query.get_table() is None


def test_raw_helper_accepts_list_or_varargs():
    assert QueryBuilder.raw("a IN (?, ?)", [1, 2]).bindings == (1, 2)
    assert QueryBuilder.raw("a = ? AND b = ?", 1, 2).bindings == (1, 2)
    assert Raw("a = ?", 5).bindings == (5,)
