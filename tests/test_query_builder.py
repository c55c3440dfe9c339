"""
Query builder tests: rendering, binding order and clause validation.
"""

from datetime import datetime

import pytest

from db.errors import BuilderStateError, InvalidArgument
from db.query_builder import QueryBuilder, RenderedStatement, Statement, render


def products():
    return QueryBuilder("products")


class TestSelect:

    def test_select_by_id(self):
        rendered = products().select().where("id", "42").build()
        assert rendered.text == "SELECT * FROM products WHERE id = %s"
        assert rendered.text.count("%s") == 1
        assert rendered.bindings == ["42"]

    def test_projection_ordering_and_limit(self):
        rendered = (
            products()
            .select(["id", "name"])
            .where("featured", True)
            .order_by("rating", "desc")
            .limit(10)
            .build()
        )
        assert rendered.text == (
            "SELECT id, name FROM products WHERE featured = %s ORDER BY rating DESC LIMIT 10"
        )
        assert rendered.bindings == [True]

    def test_empty_projection_means_all_columns(self):
        assert products().select([]).build().text == "SELECT * FROM products"

    def test_predicates_keep_call_order(self):
        rendered = (
            products()
            .select()
            .where("category", "bricks")
            .where("price", "<", 10)
            .where("stock", ">=", 1)
            .build()
        )
        assert rendered.text.endswith("WHERE category = %s AND price < %s AND stock >= %s")
        assert rendered.bindings == ["bricks", 10, 1]

    def test_second_order_by_and_limit_replace_first(self):
        rendered = (
            products().select().order_by("name").order_by("rating", "DESC").limit(5).limit(3).build()
        )
        assert rendered.text == "SELECT * FROM products ORDER BY rating DESC LIMIT 3"

    def test_in_operator_binds_each_value(self):
        rendered = products().select().where("id", "in", [1, 2, 3]).build()
        assert rendered.text == "SELECT * FROM products WHERE id IN (%s, %s, %s)"
        assert rendered.bindings == [1, 2, 3]

    def test_none_compares_with_is_null(self):
        rendered = products().select().where("image_url", None).where("archived", "!=", None).build()
        assert rendered.text == (
            "SELECT * FROM products WHERE image_url IS NULL AND archived IS NOT NULL"
        )
        assert rendered.bindings == []

    def test_qmark_paramstyle(self):
        rendered = QueryBuilder("products", paramstyle="qmark").select().where("id", 7).build()
        assert rendered.text == "SELECT * FROM products WHERE id = ?"


class TestMutations:

    def test_update_binds_assignments_before_predicates(self):
        threshold = datetime(2024, 1, 1)
        rendered = (
            products().update({"archived": True}).where("createdAt", "<", threshold).build()
        )
        assert rendered.text == "UPDATE products SET archived = %s WHERE createdAt < %s"
        assert rendered.bindings == [True, threshold]

    def test_insert_with_returning(self):
        rendered = products().insert({"name": "2x4 brick", "price": 0.25}).returning("id").build()
        assert rendered.text == "INSERT INTO products (name, price) VALUES (%s, %s) RETURNING id"
        assert rendered.bindings == ["2x4 brick", 0.25]
        assert rendered.verb == "INSERT"

    def test_delete(self):
        rendered = products().delete().where("id", 3).build()
        assert rendered.text == "DELETE FROM products WHERE id = %s"
        assert rendered.bindings == [3]

    @pytest.mark.parametrize("builder", [
        lambda: products().update({"archived": True}),
        lambda: products().delete(),
    ])
    def test_mutation_without_predicate_is_refused(self, builder):
        with pytest.raises(BuilderStateError):
            builder().build()

    def test_empty_assignments_rejected(self):
        with pytest.raises(InvalidArgument):
            products().update({})
        with pytest.raises(InvalidArgument):
            products().insert({})

    def test_insert_rejects_where(self):
        with pytest.raises(BuilderStateError):
            products().insert({"name": "x"}).where("id", 1).build()

    def test_limit_only_on_select(self):
        with pytest.raises(BuilderStateError):
            products().delete().where("id", 1).limit(1).build()


class TestStateAndValidation:

    def test_build_without_verb(self):
        with pytest.raises(BuilderStateError):
            products().where("id", 1).build()

    def test_verb_is_exclusive(self):
        with pytest.raises(BuilderStateError):
            products().select().delete()
        with pytest.raises(BuilderStateError):
            products().update({"a": 1}).insert({"a": 1})

    @pytest.mark.parametrize("direction", ["UP", "", None, "ascending"])
    def test_bad_direction(self, direction):
        with pytest.raises(InvalidArgument):
            products().select().order_by("rating", direction)

    @pytest.mark.parametrize("n", [-1, 2.5, "10", True])
    def test_bad_limit(self, n):
        with pytest.raises(InvalidArgument):
            products().select().limit(n)

    def test_limit_zero_is_allowed(self):
        assert products().select().limit(0).build().text.endswith("LIMIT 0")

    @pytest.mark.parametrize("name", ["name; DROP TABLE products", "1col", "a.b", ""])
    def test_identifiers_are_validated(self, name):
        with pytest.raises(InvalidArgument):
            products().select().where(name, 1)

    def test_bad_operator(self):
        with pytest.raises(InvalidArgument):
            products().select().where("price", "~", 1)

    def test_null_with_ordering_operator(self):
        with pytest.raises(InvalidArgument):
            products().select().where("price", "<", None)

    def test_empty_in_list(self):
        with pytest.raises(InvalidArgument):
            products().select().where("id", "IN", [])


class TestPurity:

    def test_build_is_idempotent(self):
        builder = products().update({"archived": True, "stock": 0}).where("id", "IN", (1, 2))
        assert builder.build() == builder.build()

    def test_fluent_calls_do_not_mutate_the_receiver(self):
        base = products().select()
        narrowed = base.where("category", "bricks")
        assert base.build().text == "SELECT * FROM products"
        assert narrowed.build().text == "SELECT * FROM products WHERE category = %s"

    @pytest.mark.parametrize("builder", [
        products().insert({"a": 1, "b": 2, "c": 3}),
        products().update({"a": 1}).where("x", 1).where("y", "IN", [1, 2]),
        products().select(["a"]).where("x", None).where("y", "LIKE", "%z%"),
        products().delete().where("x", "NOT IN", [1, 2, 3]).returning("*"),
    ])
    def test_binding_count_matches_placeholders(self, builder):
        rendered = builder.build()
        assert len(rendered.bindings) == rendered.text.count("%s")

    def test_render_statement_value(self):
        statement = Statement(table="users", verb="SELECT", columns=("email",))
        assert render(statement, "qmark") == RenderedStatement("SELECT email FROM users", [])
