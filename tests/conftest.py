"""Pytest configuration for storefront tests.

The backend is an in-memory stand-in for Supabase (PostgREST tables plus the
password-grant auth endpoints) served through httpx.MockTransport, so the
real SupabaseClient, gateway and stores run end to end without a network.
"""

import asyncio
import json
import re
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from storefront.app import Storefront
from storefront.core.config import StorefrontConfig
from storefront.models import Product

TEST_EMAIL = "ada@example.com"
TEST_PASSWORD = "correct-horse"

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

CATALOG_ROWS = [
    {
        "id": "p-ipad", "slug": "ipad-air", "name": "iPad Air", "description": "Thin and light tablet",
        "price": "599.00", "compare_at_price": "649.00", "images": ["/img/ipad.png"],
        "category": "Tablets", "brand": "Apple", "color": "Blue", "condition": "New",
        "memory": "128GB", "screen_size": "11in", "inventory": 10, "rating": 4.8,
        "created_at": "2025-03-01T00:00:00+00:00",
    },
    {
        "id": "p-tab", "slug": "galaxy-tab-a9", "name": "Galaxy Tab A9", "description": "Budget tablet",
        "price": 250, "compare_at_price": None, "images": [],
        "category": "Tablets", "brand": "Samsung", "color": "Gray", "condition": "Like New",
        "memory": "64GB", "screen_size": "8.7in", "inventory": 3, "rating": 4.1,
        "created_at": "2025-06-01T00:00:00+00:00",
    },
    {
        "id": "p-pixel", "slug": "pixel-8", "name": "Pixel 8", "description": "Google phone",
        "price": 699, "compare_at_price": 799, "images": ["/img/pixel.png"],
        "category": "Phones", "brand": "Google", "color": "Black", "condition": "New",
        "memory": "128GB", "screen_size": "6.2in", "inventory": 5, "rating": 4.5,
        "created_at": "2025-01-15T00:00:00+00:00",
    },
    {
        "id": "p-thinkpad", "slug": "thinkpad-x1", "name": "ThinkPad X1", "description": "Business laptop",
        "price": 1499, "compare_at_price": None, "images": ["/img/x1.png"],
        "category": "Laptops", "brand": "Lenovo", "color": "Black", "condition": "Open Box",
        "memory": "16GB", "screen_size": "14in", "inventory": 0, "rating": 4.3,
        "created_at": None,
    },
    {
        "id": "p-airpods", "slug": "airpods-pro", "name": "AirPods Pro", "description": "Noise cancelling earbuds",
        "price": 249, "compare_at_price": 249, "images": ["/img/airpods.png"],
        "category": "Audio", "brand": "Apple", "color": "White", "condition": "New",
        "memory": None, "screen_size": None, "inventory": 20, "rating": 4.6,
        "created_at": "2025-09-01T00:00:00+00:00",
    },
]


def _run(coro):
    return asyncio.run(coro)


def _norm(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class FakeSupabase:
    """Just enough PostgREST + GoTrue to back the gateway."""

    UNIQUE = {"cart": ("user_id", "product_id"), "wishlist": ("user_id", "product_id")}

    def __init__(self):
        self.tables = {"products": [], "cart": [], "wishlist": [], "orders": []}
        self.users = {}
        self.requests = []
        self._failures = []
        self._clock = 0

    # -- setup helpers ------------------------------------------------------

    def seed_catalog(self, rows=CATALOG_ROWS):
        self.tables["products"] = [dict(r) for r in rows]

    def add_user(self, email, password, full_name="", phone=""):
        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "user_metadata": {"full_name": full_name, "phone": phone},
        }
        self.users[email] = (password, user)
        return user

    def fail(self, method, table, status=500, times=1, exc=None, body=None):
        """
        Make the next `times` matching requests fail with `status` (or raise `exc`).

        With `body`, answer with that payload instead: a str is sent as raw
        text, anything else as JSON.
        """
        self._failures.append({
            "method": method, "table": table, "status": status, "times": times, "exc": exc, "body": body,
        })

    def rows(self, table, **where):
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in where.items())]

    # -- request handling ----------------------------------------------------

    async def handler(self, request):
        self.requests.append(request)
        # Give concurrently scheduled tasks a chance to interleave, like real I/O
        await asyncio.sleep(0)
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])

        table = path[len("/rest/v1/"):]
        for failure in self._failures:
            if failure["times"] > 0 and failure["method"] == request.method and failure["table"] == table:
                failure["times"] -= 1
                if failure["exc"] is not None:
                    raise failure["exc"]("simulated", request=request)
                if isinstance(failure["body"], str):
                    return httpx.Response(failure["status"], text=failure["body"])
                if failure["body"] is not None:
                    return httpx.Response(failure["status"], json=failure["body"])
                return httpx.Response(failure["status"], json={"message": "simulated failure"})

        params = request.url.params
        if request.method == "GET":
            return httpx.Response(200, json=self._select(table, params))
        if request.method == "POST":
            return self._insert(table, json.loads(request.content))
        if request.method == "PATCH":
            patch = json.loads(request.content)
            updated = []
            for row in self.tables[table]:
                if self._matches(row, params):
                    row.update(patch)
                    updated.append(dict(row))
            return httpx.Response(200, json=updated)
        if request.method == "DELETE":
            self.tables[table] = [r for r in self.tables[table] if not self._matches(r, params)]
            return httpx.Response(204)
        return httpx.Response(405)

    def _now(self):
        self._clock += 1
        return (_BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def _select(self, table, params):
        found = [dict(r) for r in self.tables[table] if self._matches(r, params)]
        order = params.get("order")
        if order:
            column, _, direction = order.partition(".")
            found.sort(key=lambda r: _norm(r.get(column)), reverse=direction == "desc")
        limit = params.get("limit")
        if limit:
            found = found[:int(limit)]
        return found

    def _insert(self, table, payload):
        keys = self.UNIQUE.get(table)
        if keys and self.rows(table, **{k: payload.get(k) for k in keys}):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key value violates unique constraint"})
        row = dict(payload)
        row.setdefault("id", str(uuid.uuid4()))
        row["created_at"] = row.get("created_at") or self._now()
        self.tables[table].append(row)
        return httpx.Response(201, json=[dict(row)])

    def _matches(self, row, params):
        for key, value in params.multi_items():
            if key in ("select", "order", "limit"):
                continue
            if key in ("or", "and"):
                conditions = [c.split(".", 1) for c in value.strip("()").split(",")]
                results = [self._condition(row, col, expr) for col, expr in conditions]
                if not (any(results) if key == "or" else all(results)):
                    return False
            elif not self._condition(row, key, value):
                return False
        return True

    @staticmethod
    def _condition(row, column, expr):
        op, _, operand = expr.partition(".")
        value = row.get(column)
        if op == "eq":
            return _norm(value) == operand
        if op == "gte":
            return value is not None and float(value) >= float(operand)
        if op == "lte":
            return value is not None and float(value) <= float(operand)
        if op == "ilike":
            pattern = "^" + ".*".join(re.escape(part) for part in operand.split("*")) + "$"
            return value is not None and re.match(pattern, str(value), re.IGNORECASE) is not None
        raise AssertionError(f"unsupported operator {op!r}")

    def _auth(self, request, path):
        if path == "logout":
            return httpx.Response(204)
        body = json.loads(request.content or b"{}")
        if path == "token":
            entry = self.users.get(body.get("email"))
            if entry is None or entry[0] != body.get("password"):
                return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})
            return httpx.Response(200, json=self._session(entry[1]))
        if path == "signup":
            if body.get("email") in self.users:
                return httpx.Response(422, json={"msg": "User already registered"})
            meta = body.get("data") or {}
            user = self.add_user(body["email"], body["password"], meta.get("full_name", ""), meta.get("phone", ""))
            return httpx.Response(200, json=self._session(user))
        return httpx.Response(404)

    @staticmethod
    def _session(user):
        return {
            "access_token": f"token-{user['id']}",
            "refresh_token": "refresh",
            "expires_in": 3600,
            "token_type": "bearer",
            "user": user,
        }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return StorefrontConfig(supabase_url="https://test.supabase.co", supabase_key="anon-key")


@pytest.fixture
def backend():
    fake = FakeSupabase()
    fake.seed_catalog()
    fake.add_user(TEST_EMAIL, TEST_PASSWORD, full_name="Ada Lovelace", phone="555-0100")
    return fake


@pytest.fixture
def app(config, backend):
    storefront = Storefront(config=config, transport=httpx.MockTransport(backend.handler))
    yield storefront
    _run(storefront.aclose())


@pytest.fixture
def signed_in_app(app):
    _run(app.sign_in(TEST_EMAIL, TEST_PASSWORD))
    app.notifier.clear()
    return app


@pytest.fixture
def catalog():
    from storefront.mappers import product_from_row
    return [product_from_row(r) for r in CATALOG_ROWS]


def make_product(**overrides) -> Product:
    fields = {
        "id": "p-test",
        "slug": "test-product",
        "name": "Test Product",
        "price": 10.0,
        "category": "Gadgets",
        "inventory": 50,
    }
    fields.update(overrides)
    return Product(**fields)
