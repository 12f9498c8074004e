"""
Shopper-side cart and wishlist.

The cart lives with the client; the storage medium is whatever
``CartRepository`` it is given. Every mutation is saved immediately so the
cart survives a session restart.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from schemas import DeliveryMethod
from settings import get_settings

logger = logging.getLogger("storefront.cart")


class DeliveryOption(BaseModel):
    method: DeliveryMethod
    fee: float
    lead_time: str


DELIVERY_OPTIONS: Dict[DeliveryMethod, DeliveryOption] = {
    DeliveryMethod.standard: DeliveryOption(method=DeliveryMethod.standard, fee=30000, lead_time="3-5 days"),
    DeliveryMethod.express: DeliveryOption(method=DeliveryMethod.express, fee=50000, lead_time="1-2 days"),
    DeliveryMethod.pickup: DeliveryOption(method=DeliveryMethod.pickup, fee=0, lead_time="Pick up at store"),
}


def delivery_fee(method: Union[DeliveryMethod, str]) -> float:
    return DELIVERY_OPTIONS[DeliveryMethod(method)].fee


# ---------- Models ----------
class CartProduct(BaseModel):
    """The product fields a cart line needs, as last seen by the client."""
    id: str
    name: str
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    category: Optional[str] = None
    sku: Optional[str] = None
    image: Optional[str] = None


class CartItem(BaseModel):
    product: CartProduct
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class CartState(BaseModel):
    items: List[CartItem] = Field(default_factory=list)


class WishlistState(BaseModel):
    products: List[CartProduct] = Field(default_factory=list)


def as_cart_product(product) -> CartProduct:
    if isinstance(product, CartProduct):
        return product
    if isinstance(product, dict):
        return CartProduct.model_validate(product)
    return CartProduct.model_validate(product, from_attributes=True)


# ---------- Shipping policies ----------
class ShippingPolicy(Protocol):
    def fee(self, subtotal: float, item_count: int) -> float:
        ...


class ThresholdShipping:
    """Flat fee, waived once the subtotal reaches the free-shipping threshold."""

    def __init__(self, flat_fee: float = 30000, free_threshold: float = 500000):
        self.flat_fee = flat_fee
        self.free_threshold = free_threshold

    @classmethod
    def from_settings(cls, settings) -> "ThresholdShipping":
        return cls(flat_fee=settings.flat_shipping_fee, free_threshold=settings.free_shipping_threshold)

    def fee(self, subtotal: float, item_count: int) -> float:
        if item_count == 0:
            return 0
        return 0 if subtotal >= self.free_threshold else self.flat_fee


class DeliveryMethodShipping:
    """Fixed fee of the chosen delivery method."""

    def __init__(self, method: Union[DeliveryMethod, str] = DeliveryMethod.standard):
        self.method = DeliveryMethod(method)

    def fee(self, subtotal: float, item_count: int) -> float:
        if item_count == 0:
            return 0
        return delivery_fee(self.method)


# ---------- Repositories ----------
class CartRepository(Protocol):
    def load(self) -> CartState:
        ...

    def save(self, state: CartState) -> None:
        ...


class WishlistRepository(Protocol):
    def load(self) -> WishlistState:
        ...

    def save(self, state: WishlistState) -> None:
        ...


class _InMemoryRepository:
    state_model = BaseModel

    def __init__(self, state=None):
        self._state = state.model_copy(deep=True) if state is not None else self.state_model()

    def load(self):
        return self._state.model_copy(deep=True)

    def save(self, state) -> None:
        self._state = state.model_copy(deep=True)


class _JsonFileRepository:
    state_model = BaseModel

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self):
        if not self.path.exists():
            return self.state_model()
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return self.state_model()
        return self.state_model.model_validate_json(raw)

    def save(self, state) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(state.model_dump_json(), encoding="utf-8")
        tmp.replace(self.path)


class InMemoryCartRepository(_InMemoryRepository):
    state_model = CartState


class JsonFileCartRepository(_JsonFileRepository):
    state_model = CartState


class InMemoryWishlistRepository(_InMemoryRepository):
    state_model = WishlistState


class JsonFileWishlistRepository(_JsonFileRepository):
    state_model = WishlistState


# ---------- Cart ----------
class Cart:
    def __init__(self, repository: Optional[CartRepository] = None, shipping: Optional[ShippingPolicy] = None):
        self.repository = repository if repository is not None else InMemoryCartRepository()
        self.shipping = shipping if shipping is not None else ThresholdShipping.from_settings(get_settings())
        state = self.repository.load()
        self._items: Dict[str, CartItem] = {item.product.id: item for item in state.items}

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._items

    def get(self, product_id: str) -> Optional[CartItem]:
        return self._items.get(product_id)

    def is_empty(self) -> bool:
        return not self._items

    def add_item(self, product, qty: int = 1) -> Optional[CartItem]:
        """Add ``qty`` units, merging with an existing line. Quantities stay within stock."""
        if qty <= 0:
            return None
        product = as_cart_product(product)
        existing = self._items.get(product.id)
        quantity = qty + (existing.quantity if existing else 0)
        quantity = min(quantity, product.stock)
        if quantity < 1:
            logger.debug(f"Product {product.id} is out of stock, not added")
            return existing
        item = CartItem(product=product, quantity=quantity)
        self._items[product.id] = item
        self._save()
        return item

    def set_quantity(self, product_id: str, qty: int) -> Optional[CartItem]:
        existing = self._items.get(product_id)
        if existing is None:
            return None
        if qty <= 0 or existing.product.stock < 1:
            self.remove_item(product_id)
            return None
        quantity = max(1, min(qty, existing.product.stock))
        item = CartItem(product=existing.product, quantity=quantity)
        self._items[product_id] = item
        self._save()
        return item

    def remove_item(self, product_id: str) -> None:
        if self._items.pop(product_id, None) is not None:
            self._save()

    def refresh_product(self, product) -> None:
        """Replace the stored product record, e.g. after a price or stock change."""
        product = as_cart_product(product)
        existing = self._items.get(product.id)
        if existing is None:
            return
        self._items[product.id] = CartItem(product=product, quantity=existing.quantity)
        self.set_quantity(product.id, existing.quantity)

    def clear(self) -> None:
        self._items.clear()
        self._save()

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def subtotal(self) -> float:
        return round(sum(item.line_total for item in self._items.values()), 2)

    def shipping_fee(self) -> float:
        return self.shipping.fee(self.subtotal(), self.item_count())

    def total(self) -> float:
        return round(self.subtotal() + self.shipping_fee(), 2)

    def snapshot(self) -> CartState:
        return CartState(items=[item.model_copy(deep=True) for item in self._items.values()])

    def _save(self) -> None:
        self.repository.save(self.snapshot())


# ---------- Wishlist ----------
class Wishlist:
    def __init__(self, repository: Optional[WishlistRepository] = None):
        self.repository = repository if repository is not None else InMemoryWishlistRepository()
        state = self.repository.load()
        self._products: Dict[str, CartProduct] = {p.id: p for p in state.products}

    @property
    def products(self) -> List[CartProduct]:
        return list(self._products.values())

    def __len__(self) -> int:
        return len(self._products)

    def contains(self, product_id: str) -> bool:
        return product_id in self._products

    def add(self, product) -> None:
        product = as_cart_product(product)
        if product.id in self._products:
            return
        self._products[product.id] = product
        self._save()

    def remove(self, product_id: str) -> None:
        if self._products.pop(product_id, None) is not None:
            self._save()

    def toggle(self, product) -> bool:
        """Add or remove; returns True when the product is now wished for."""
        product = as_cart_product(product)
        if product.id in self._products:
            self.remove(product.id)
            return False
        self.add(product)
        return True

    def move_to_cart(self, product_id: str, cart: Cart, qty: int = 1) -> Optional[CartItem]:
        product = self._products.get(product_id)
        if product is None:
            return None
        item = cart.add_item(product, qty)
        if item is not None:
            self.remove(product_id)
        return item

    def clear(self) -> None:
        self._products.clear()
        self._save()

    def _save(self) -> None:
        self.repository.save(WishlistState(products=list(self._products.values())))
