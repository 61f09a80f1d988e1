"""
Gateway tests against the in-memory Supabase stand-in.

Covers query construction, user scoping, the cart upsert rules and how
backend failures surface (log + toast + GatewayError).
"""

import httpx
import pytest

from conftest import _run, make_product
from storefront.errors import GatewayError, LoginRequiredError, OutOfStockError
from storefront.models import NewOrder, OrderItem, OrderStatus
from storefront.utils.supabase_client import SupabaseClient, build_filter_params


def _new_order(number="ORD-1-ABC", total=270.0):
    return NewOrder(
        order_number=number,
        items=[OrderItem(product_id="p-tab", product_name="Galaxy Tab A9", quantity=1, price=250)],
        total=total,
        created_at="2026-01-02T00:00:00+00:00",
        shipping_method="standard",
        payment_method="card",
    )


# ── Supabase client ───────────────────────────────────────────────────────

class TestSupabaseClient:
    def test_bare_values_become_equality(self):
        assert build_filter_params({"id": "p-1", "inventory": 3}) == {"id": "eq.p-1", "inventory": "eq.3"}

    def test_operator_values_pass_through(self):
        assert build_filter_params({"price": "gte.10"}) == {"price": "gte.10"}

    def test_dotted_value_without_operator_is_equality(self):
        assert build_filter_params({"slug": "v1.2"}) == {"slug": "eq.v1.2"}

    def test_unfiltered_delete_refused(self):
        client = SupabaseClient("https://x.supabase.co", "k", transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        with pytest.raises(ValueError):
            _run(client.delete("cart", {}))

    def test_headers(self, app, backend):
        _run(app.gateway.get_product("p-tab"))
        request = backend.requests[-1]
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer anon-key"

    def test_user_token_sent_when_signed_in(self, signed_in_app, backend):
        _run(signed_in_app.gateway.list_cart())
        request = backend.requests[-1]
        assert request.headers["authorization"] == f"Bearer {signed_in_app.auth.access_token}"
        assert request.url.params["user_id"] == f"eq.{signed_in_app.auth.user_id}"


# ── Products ──────────────────────────────────────────────────────────────

class TestProducts:
    def test_list_all_sorted_by_name(self, app):
        products = _run(app.gateway.list_products())
        assert [p.name for p in products] == sorted(p.name for p in products)
        assert len(products) == 5

    def test_category_and_price_max(self, app):
        products = _run(app.gateway.list_products(category="Tablets", price_max=300))
        assert [p.id for p in products] == ["p-tab"]

    def test_price_range(self, app):
        products = _run(app.gateway.list_products(price_min=500, price_max=700))
        assert {p.id for p in products} == {"p-ipad", "p-pixel"}

    def test_inactive_products_hidden(self, app, backend):
        backend.rows("products", id="p-pixel")[0]["is_active"] = False
        assert "p-pixel" not in {p.id for p in _run(app.gateway.list_products())}

    def test_get_product_and_slug(self, app):
        by_id = _run(app.gateway.get_product("p-ipad"))
        by_slug = _run(app.gateway.get_product_by_slug("ipad-air"))
        assert by_id == by_slug
        assert by_id.price == 599.0
        assert by_id.has_discount

    def test_missing_product_is_none(self, app):
        assert _run(app.gateway.get_product("nope")) is None
        assert app.notifier.last is None

    def test_not_acceptable_status_is_none(self, app, backend):
        backend.fail("GET", "products", status=406)
        assert _run(app.gateway.get_product("p-ipad")) is None

    def test_search(self, app):
        assert {p.id for p in _run(app.gateway.search_products("tab"))} == {"p-ipad", "p-tab"}

    def test_blank_search_lists_everything(self, app):
        assert len(_run(app.gateway.search_products("   "))) == 5

    def test_search_strips_filter_syntax(self, app, backend):
        _run(app.gateway.search_products("pixel,(8)"))
        assert "pixel8" in backend.requests[-1].url.params["or"]

    def test_server_error_notifies_and_raises(self, app, backend):
        backend.fail("GET", "products", status=500)
        with pytest.raises(GatewayError) as excinfo:
            _run(app.gateway.list_products())
        assert excinfo.value.status_code == 500
        assert excinfo.value.resource == "products"
        assert app.notifier.last.level == "error"
        assert app.notifier.last.message == "Failed to load products"

    def test_timeout_is_a_gateway_error(self, app, backend):
        backend.fail("GET", "products", exc=httpx.ReadTimeout)
        with pytest.raises(GatewayError) as excinfo:
            _run(app.gateway.get_product("p-ipad"))
        assert excinfo.value.status_code is None


# ── Cart ──────────────────────────────────────────────────────────────────

class TestCart:
    def test_anonymous_reads_are_empty(self, app):
        assert _run(app.gateway.list_cart()) == []
        assert _run(app.gateway.list_wishlist()) == []
        assert _run(app.gateway.list_orders()) == []

    def test_anonymous_writes_require_login(self, app):
        with pytest.raises(LoginRequiredError) as excinfo:
            _run(app.gateway.add_to_cart(make_product()))
        assert excinfo.value.status_code == 401
        assert app.notifier.last.message == "Please login to add items to your cart"

    def test_add_stores_snapshot(self, signed_in_app, backend):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        item = _run(signed_in_app.gateway.add_to_cart(tab, 2))
        assert item.quantity == 2
        row = backend.rows("cart")[0]
        assert row["user_id"] == signed_in_app.auth.user_id
        assert row["product_snapshot"]["name"] == "Galaxy Tab A9"
        assert row["product_snapshot"]["price"] == 250.0

    def test_add_increments_and_clamps(self, signed_in_app):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))  # inventory 3
        _run(signed_in_app.gateway.add_to_cart(tab, 2))
        item = _run(signed_in_app.gateway.add_to_cart(tab, 2))
        assert item.quantity == 3

    def test_out_of_stock(self, signed_in_app, backend):
        thinkpad = _run(signed_in_app.gateway.get_product("p-thinkpad"))
        with pytest.raises(OutOfStockError):
            _run(signed_in_app.gateway.add_to_cart(thinkpad))
        assert backend.rows("cart") == []

    def test_insert_conflict_is_retried(self, signed_in_app, backend):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        backend.fail("POST", "cart", status=409)
        item = _run(signed_in_app.gateway.add_to_cart(tab, 1))
        assert item.quantity == 1
        assert len(backend.rows("cart")) == 1
        assert [r.method for r in backend.requests[-4:]] == ["GET", "POST", "GET", "POST"]

    def test_existing_row_is_incremented(self, signed_in_app, backend):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        backend.tables["cart"].append({
            "id": "row-other", "user_id": signed_in_app.auth.user_id, "product_id": "p-tab",
            "product_snapshot": tab.model_dump(), "quantity": 1, "created_at": "2026-01-01T00:00:00+00:00",
        })
        item = _run(signed_in_app.gateway.add_to_cart(tab, 1))
        assert item.id == "row-other"
        assert item.quantity == 2

    def test_persistent_conflict_gives_up(self, signed_in_app, backend):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        backend.fail("POST", "cart", status=409, times=2)
        with pytest.raises(GatewayError):
            _run(signed_in_app.gateway.add_to_cart(tab))
        assert signed_in_app.notifier.last.message == "Failed to add item to cart"

    def test_update_quantity_clamps(self, signed_in_app):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        item = _run(signed_in_app.gateway.add_to_cart(tab))
        updated = _run(signed_in_app.gateway.update_cart_quantity(item.id, 10))
        assert updated.quantity == 3

    def test_update_quantity_zero_removes(self, signed_in_app, backend):
        tab = _run(signed_in_app.gateway.get_product("p-tab"))
        item = _run(signed_in_app.gateway.add_to_cart(tab))
        assert _run(signed_in_app.gateway.update_cart_quantity(item.id, 0)) is None
        assert backend.rows("cart") == []

    def test_clear_only_touches_own_rows(self, signed_in_app, backend):
        backend.tables["cart"].append({
            "id": "someone-else", "user_id": "other-user", "product_id": "p-tab",
            "product_snapshot": None, "quantity": 1, "created_at": "2026-01-01T00:00:00+00:00",
        })
        _run(signed_in_app.gateway.add_to_cart(_run(signed_in_app.gateway.get_product("p-ipad"))))
        _run(signed_in_app.gateway.clear_cart())
        assert [r["id"] for r in backend.rows("cart")] == ["someone-else"]


# ── Wishlist ──────────────────────────────────────────────────────────────

class TestWishlist:
    def test_add_is_idempotent(self, signed_in_app, backend):
        ipad = _run(signed_in_app.gateway.get_product("p-ipad"))
        first = _run(signed_in_app.gateway.add_to_wishlist(ipad))
        second = _run(signed_in_app.gateway.add_to_wishlist(ipad))
        assert first.id == second.id
        assert len(backend.rows("wishlist")) == 1

    def test_remove(self, signed_in_app, backend):
        ipad = _run(signed_in_app.gateway.get_product("p-ipad"))
        _run(signed_in_app.gateway.add_to_wishlist(ipad))
        _run(signed_in_app.gateway.remove_from_wishlist("p-ipad"))
        assert backend.rows("wishlist") == []


# ── Orders ────────────────────────────────────────────────────────────────

class TestOrders:
    def test_create_list_get(self, signed_in_app, backend):
        created = _run(signed_in_app.gateway.create_order(_new_order()))
        assert created.id
        assert created.status == OrderStatus.PENDING
        assert created.items[0].product_name == "Galaxy Tab A9"

        row = backend.rows("orders")[0]
        assert row["user_id"] == signed_in_app.auth.user_id
        assert row["status"] == "pending"

        _run(signed_in_app.gateway.create_order(_new_order("ORD-2-DEF", 100.0)))
        orders = _run(signed_in_app.gateway.list_orders())
        assert len(orders) == 2

        fetched = _run(signed_in_app.gateway.get_order(created.id))
        assert fetched.order_number == "ORD-1-ABC"
        assert _run(signed_in_app.gateway.get_order("missing")) is None

    def test_create_order_failure(self, signed_in_app, backend):
        backend.fail("POST", "orders", status=500)
        with pytest.raises(GatewayError):
            _run(signed_in_app.gateway.create_order(_new_order()))
        assert signed_in_app.notifier.last.message == "Failed to place order"

    def test_create_order_requires_login(self, app):
        with pytest.raises(LoginRequiredError):
            _run(app.gateway.create_order(_new_order()))


# ── Malformed responses ───────────────────────────────────────────────────

class TestMalformedResponses:
    def test_non_json_body_is_a_gateway_error(self, app, backend):
        backend.fail("GET", "products", status=200, body="<html>bad gateway</html>")
        with pytest.raises(GatewayError) as excinfo:
            _run(app.gateway.list_products())
        assert excinfo.value.resource == "products"
        assert app.notifier.last.message == "Failed to load products"

    def test_non_json_body_is_not_treated_as_missing(self, app, backend):
        backend.fail("GET", "products", status=200, body="<html>bad gateway</html>")
        with pytest.raises(GatewayError):
            _run(app.gateway.get_product("p-ipad"))

    def test_row_failing_validation(self, signed_in_app, backend):
        backend.tables["orders"].append({
            "id": "o-odd", "user_id": signed_in_app.auth.user_id, "order_number": "ORD-9-Z",
            "items": [], "total": 10, "status": "lost-in-transit", "created_at": "2026-01-01T00:00:00+00:00",
        })
        with pytest.raises(GatewayError):
            _run(signed_in_app.gateway.list_orders())
        assert signed_in_app.notifier.last.message == "Failed to load orders"

    def test_rows_of_the_wrong_shape(self, signed_in_app, backend):
        backend.fail("GET", "cart", status=200, body=[{"unexpected": True}])
        with pytest.raises(GatewayError):
            _run(signed_in_app.gateway.list_cart())
