"""
Cart and wishlist behaviour: quantities, totals, shipping policies, persistence.
"""
import pytest

from cart import (
    DELIVERY_OPTIONS,
    Cart,
    CartProduct,
    DeliveryMethodShipping,
    InMemoryCartRepository,
    JsonFileCartRepository,
    JsonFileWishlistRepository,
    ThresholdShipping,
    Wishlist,
)
from schemas import DeliveryMethod


@pytest.fixture
def pho():
    return CartProduct(id="p1", name="Pho", price=65000, stock=50, category="Noodles")


@pytest.fixture
def coffee():
    return CartProduct(id="p2", name="Ca Phe", price=25000, stock=3, category="Drinks")


# ============================================================================
# Quantities
# ============================================================================

class TestQuantities:

    def test_add_new_item(self, pho):
        cart = Cart()
        item = cart.add_item(pho, 2)
        assert item.quantity == 2
        assert "p1" in cart

    def test_add_existing_item_increments(self, pho):
        cart = Cart()
        cart.add_item(pho)
        cart.add_item(pho, 3)
        assert cart.get("p1").quantity == 4
        assert len(cart) == 1

    def test_add_non_positive_is_ignored(self, pho):
        cart = Cart()
        assert cart.add_item(pho, 0) is None
        assert cart.add_item(pho, -2) is None
        assert cart.is_empty()

    def test_add_clamps_to_stock(self, coffee):
        cart = Cart()
        cart.add_item(coffee, 10)
        assert cart.get("p2").quantity == 3

    def test_add_out_of_stock_product_is_ignored(self):
        cart = Cart()
        sold_out = CartProduct(id="p9", name="Sold out", price=1000, stock=0)
        assert cart.add_item(sold_out) is None
        assert cart.is_empty()

    def test_set_quantity_zero_removes(self, pho):
        cart = Cart()
        cart.add_item(pho, 2)
        cart.set_quantity("p1", 0)
        assert "p1" not in cart

    def test_set_quantity_negative_removes(self, pho):
        cart = Cart()
        cart.add_item(pho, 2)
        cart.set_quantity("p1", -1)
        assert cart.is_empty()

    def test_set_quantity_clamps_to_stock(self, coffee):
        cart = Cart()
        cart.add_item(coffee)
        cart.set_quantity("p2", 99)
        assert cart.get("p2").quantity == 3

    def test_set_quantity_unknown_product(self):
        cart = Cart()
        assert cart.set_quantity("missing", 3) is None
        assert cart.is_empty()

    def test_remove_is_idempotent(self, pho):
        cart = Cart()
        cart.add_item(pho)
        cart.remove_item("p1")
        cart.remove_item("p1")
        assert cart.is_empty()

    def test_refresh_product_uses_new_price_and_stock(self, coffee):
        cart = Cart()
        cart.add_item(coffee, 3)
        cart.refresh_product(coffee.model_copy(update={"price": 30000, "stock": 2}))
        assert cart.get("p2").quantity == 2
        assert cart.subtotal() == 60000


# ============================================================================
# Totals
# ============================================================================

class TestTotals:

    def test_scenario_below_free_shipping(self, pho):
        cart = Cart(shipping=ThresholdShipping(flat_fee=30000, free_threshold=500000))
        cart.add_item(pho, 2)
        assert cart.subtotal() == 130000
        assert cart.shipping_fee() == 30000
        assert cart.total() == 160000

    def test_scenario_free_shipping_reached(self, pho):
        cart = Cart(shipping=ThresholdShipping(flat_fee=30000, free_threshold=500000))
        cart.add_item(pho, 8)
        assert cart.subtotal() == 520000
        assert cart.shipping_fee() == 0
        assert cart.total() == cart.subtotal()

    def test_empty_cart_has_no_shipping(self):
        cart = Cart()
        assert cart.subtotal() == 0
        assert cart.shipping_fee() == 0
        assert cart.total() == 0

    def test_default_policy_follows_settings(self, pho, cheap_shipping):
        cart = Cart()
        cart.add_item(pho)
        assert cart.shipping_fee() == 15000
        cart.add_item(pho)
        assert cart.subtotal() == 130000
        assert cart.shipping_fee() == 0
        assert cart.total() == 130000

    def test_total_is_subtotal_plus_shipping(self, pho, coffee):
        for policy in (ThresholdShipping(), DeliveryMethodShipping("express"), DeliveryMethodShipping("pickup")):
            cart = Cart(shipping=policy)
            cart.add_item(pho, 3)
            cart.add_item(coffee, 2)
            expected_subtotal = sum(i.product.price * i.quantity for i in cart.items)
            assert cart.subtotal() == expected_subtotal
            assert cart.total() == cart.subtotal() + cart.shipping_fee()

    def test_delivery_method_fees(self, pho):
        cart = Cart()
        cart.add_item(pho)
        fees = {}
        for method in DeliveryMethod:
            cart.shipping = DeliveryMethodShipping(method)
            fees[method.value] = cart.shipping_fee()
        assert fees == {"standard": 30000, "express": 50000, "pickup": 0}

    def test_delivery_options_have_lead_times(self):
        assert DELIVERY_OPTIONS[DeliveryMethod.express].lead_time == "1-2 days"

    def test_item_count(self, pho, coffee):
        cart = Cart()
        cart.add_item(pho, 2)
        cart.add_item(coffee, 1)
        assert cart.item_count() == 3


# ============================================================================
# Persistence
# ============================================================================

class TestPersistence:

    def test_mutations_are_saved(self, pho):
        repo = InMemoryCartRepository()
        cart = Cart(repo)
        cart.add_item(pho, 2)
        assert repo.load().items[0].quantity == 2

        cart.set_quantity("p1", 5)
        assert repo.load().items[0].quantity == 5

        cart.remove_item("p1")
        assert repo.load().items == []

    def test_cart_survives_restart(self, tmp_path, pho, coffee):
        path = tmp_path / "cart.json"
        cart = Cart(JsonFileCartRepository(path))
        cart.add_item(pho, 2)
        cart.add_item(coffee, 1)

        restored = Cart(JsonFileCartRepository(path))
        assert restored.item_count() == 3
        assert restored.subtotal() == cart.subtotal()

    def test_missing_file_loads_empty(self, tmp_path):
        cart = Cart(JsonFileCartRepository(tmp_path / "nothing.json"))
        assert cart.is_empty()

    def test_clear_persists(self, tmp_path, pho):
        path = tmp_path / "cart.json"
        cart = Cart(JsonFileCartRepository(path))
        cart.add_item(pho)
        cart.clear()
        assert Cart(JsonFileCartRepository(path)).is_empty()


# ============================================================================
# Wishlist
# ============================================================================

class TestWishlist:

    def test_toggle(self, pho):
        wishlist = Wishlist()
        assert wishlist.toggle(pho) is True
        assert wishlist.contains("p1")
        assert wishlist.toggle(pho) is False
        assert not wishlist.contains("p1")

    def test_add_twice_keeps_one(self, pho):
        wishlist = Wishlist()
        wishlist.add(pho)
        wishlist.add(pho)
        assert len(wishlist) == 1

    def test_move_to_cart(self, pho):
        wishlist = Wishlist()
        cart = Cart()
        wishlist.add(pho)
        item = wishlist.move_to_cart("p1", cart, qty=2)
        assert item.quantity == 2
        assert not wishlist.contains("p1")
        assert cart.get("p1").quantity == 2

    def test_move_unknown_product(self):
        assert Wishlist().move_to_cart("nope", Cart()) is None

    def test_persisted_to_file(self, tmp_path, pho, coffee):
        path = tmp_path / "wishlist.json"
        wishlist = Wishlist(JsonFileWishlistRepository(path))
        wishlist.add(pho)
        wishlist.add(coffee)
        wishlist.remove("p2")

        restored = Wishlist(JsonFileWishlistRepository(path))
        assert [p.id for p in restored.products] == ["p1"]
