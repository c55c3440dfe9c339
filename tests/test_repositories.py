"""
Repository tests against the fake backend: statement shapes, row mapping
and failure handling.
"""

from datetime import datetime, timedelta

import pytest

from db.connection import HandleState
from db.errors import InvalidArgument, QueryExecutionError, RowMappingError
from db.executor import ExecutionResult
from models.product import Product
from models.user import User
from repositories.product_repo import ProductRepository
from repositories.user_repo import UserRepository

PRODUCT_COLUMNS = (
    "id, name, description, category, price, stock, featured, rating, "
    "archived, image_url, created_at, updated_at"
)


def product_row(**overrides):
    row = {
        "id": 1,
        "name": "2x4 brick",
        "description": "Classic brick",
        "category": "bricks",
        "price": 0.25,
        "stock": 100,
        "featured": True,
        "rating": 4.8,
        "archived": False,
        "image_url": None,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 2),
    }
    row.update(overrides)
    return row


@pytest.fixture()
def products(pool, hook):
    return ProductRepository(pool, hook=hook, paramstyle="format")


@pytest.fixture()
def users(pool, hook):
    return UserRepository(pool, hook=hook, paramstyle="format")


class TestProductReads:

    def test_find_by_id_maps_row(self, products, backend):
        backend.script(ExecutionResult(rows=[product_row(id=42)]))
        product = products.find_by_id(42)

        assert isinstance(product, Product)
        assert product.id == 42
        assert product.name == "2x4 brick"
        assert backend.last_call == (f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s", [42])

    def test_find_by_id_missing_returns_none(self, products, backend):
        backend.script(ExecutionResult(rows=[]))
        assert products.find_by_id("missing-id") is None

    def test_find_all(self, products, backend):
        backend.script(ExecutionResult(rows=[product_row(id=1), product_row(id=2)]))
        assert [p.id for p in products.find_all()] == [1, 2]
        assert backend.last_call == (f"SELECT {PRODUCT_COLUMNS} FROM products", [])

    def test_find_by_category(self, products, backend):
        products.find_by_category("plates")
        assert backend.last_call == (
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE category = %s",
            ["plates"],
        )

    def test_find_featured_has_fixed_shape(self, products, backend):
        products.find_featured()
        assert backend.last_call == (
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE featured = %s ORDER BY rating DESC LIMIT 10",
            [True],
        )

    def test_custom_field_map(self, pool, backend):
        field_map = dict(ProductRepository.default_field_map)
        del field_map["created_at"], field_map["updated_at"]
        field_map["createdAt"] = "created_at"
        repo = ProductRepository(pool, field_map=field_map, paramstyle="qmark")

        row = product_row()
        row["createdAt"] = row.pop("created_at")
        backend.script(ExecutionResult(rows=[row]))
        product = repo.find_by_id(1)

        assert product.created_at == datetime(2024, 1, 1)
        assert product.updated_at is None
        assert backend.last_call[0].endswith("createdAt FROM products WHERE id = ?")

    def test_row_missing_column(self, products, backend):
        row = product_row()
        del row["rating"]
        backend.script(ExecutionResult(rows=[row]))
        with pytest.raises(RowMappingError):
            products.find_all()

    def test_placeholders_follow_the_connection(self, pool, backend):
        backend.paramstyle = "qmark"
        repo = ProductRepository(pool)
        repo.find_by_category("plates")
        assert backend.last_call == (f"SELECT {PRODUCT_COLUMNS} FROM products WHERE category = ?", ["plates"])

    def test_explicit_paramstyle_wins(self, pool, backend):
        backend.paramstyle = "qmark"
        repo = ProductRepository(pool, paramstyle="format")
        repo.find_by_id(5)
        assert backend.last_call[0].endswith("WHERE id = %s")


class TestProductWrites:

    def test_archive_old_binds_assignment_then_threshold(self, products, backend):
        backend.script(ExecutionResult(rowcount=3))
        before = datetime.now() - timedelta(days=365)

        assert products.archive_old() == 3

        text, bindings = backend.last_call
        assert text == "UPDATE products SET archived = %s WHERE created_at < %s"
        assert bindings[0] is True
        assert before <= bindings[1] <= datetime.now() - timedelta(days=365)

    def test_archive_old_uses_configured_retention(self, pool, backend):
        repo = ProductRepository(pool, paramstyle="format", retention_days=30)
        repo.archive_old()
        threshold = backend.last_call[1][1]
        assert abs((datetime.now() - threshold) - timedelta(days=30)) < timedelta(seconds=5)

    def test_add_returns_generated_id(self, products, backend):
        backend.script(ExecutionResult(rows=[{"id": 7}], rowcount=1, generated_id=7))
        product = products.add(Product(name="Plate 1x1", category="plates", price=0.1))

        assert product.id == 7
        text, bindings = backend.last_call
        assert text == (
            "INSERT INTO products (name, description, category, price, stock, featured, "
            "rating, archived) VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING id"
        )
        assert bindings == ["Plate 1x1", "", "plates", 0.1, 0, False, 0.0, False]


class TestFailures:

    def test_backend_failure_marks_connection_broken(self, products, backend, pool, hook):
        error = RuntimeError("server closed the connection unexpectedly")
        backend.script(error)

        with pytest.raises(QueryExecutionError) as exc:
            products.find_all()

        assert exc.value.__cause__ is error
        assert exc.value.statement.text.startswith("SELECT")
        assert backend.executors[0].closed
        assert pool.stats() == {"max_size": 2, "size": 0, "idle": 0, "in_use": 0, "waiting": 0}
        assert hook.names() == ["acquired", "built", "failed", "released"]

    def test_next_call_gets_a_fresh_connection(self, products, backend, pool):
        backend.script(RuntimeError("connection reset"))
        with pytest.raises(QueryExecutionError):
            products.archive_old()

        backend.script(ExecutionResult(rows=[]))
        assert products.find_all() == []
        assert len(backend.executors) == 2
        handle = pool.acquire()
        assert handle.state is HandleState.IN_USE

    def test_successful_call_returns_connection_to_idle(self, products, backend, pool, hook):
        products.find_featured()
        assert pool.stats()["idle"] == 1
        assert hook.names() == ["acquired", "built", "released"]


class TestUserRepository:

    def test_find_by_email(self, users, backend):
        backend.script(ExecutionResult(rows=[{
            "id": 3, "email": "ada@example.com", "name": "Ada", "role": "admin",
            "last_active": None, "created_at": None, "updated_at": None,
        }]))
        user = users.find_by_email("ada@example.com")
        assert isinstance(user, User)
        assert user.is_admin()
        assert backend.last_call[0].endswith("FROM users WHERE email = %s")

    def test_update_translates_fields(self, users, backend):
        backend.script(ExecutionResult(rowcount=1))
        assert users.update(3, {"name": "Ada L.", "role": "user"}) == 1
        assert backend.last_call == ("UPDATE users SET name = %s, role = %s WHERE id = %s", ["Ada L.", "user", 3])

    def test_update_rejects_unknown_field(self, users):
        with pytest.raises(InvalidArgument):
            users.update(3, {"nickname": "ada"})

    def test_add_rejects_unknown_role(self, users, backend):
        with pytest.raises(InvalidArgument):
            users.add(User(email="x@example.com", name="X", role="root"))
        assert backend.calls == []

    def test_delete(self, users, backend):
        backend.script(ExecutionResult(rowcount=0))
        assert users.delete(99) == 0
        assert backend.last_call == ("DELETE FROM users WHERE id = %s", [99])

    def test_delete_inactive(self, users, backend):
        backend.script(ExecutionResult(rowcount=2))
        assert users.delete_inactive() == 2
        text, bindings = backend.last_call
        assert text == "DELETE FROM users WHERE last_active < %s"
        assert abs((datetime.now() - bindings[0]) - timedelta(days=90)) < timedelta(seconds=5)
