"""
Checkout: turns a cart plus the shopper's choices into a stored order.

Order creation touches three collections (product stock, order, customer
stats). MongoDB multi-document transactions need a replica set, so the
sequence is run as a saga: stock is reserved with a compare-and-swap per
line, and every later failure releases what was already done before the
error propagates. A release that fails itself is logged and skipped, so the
error raised is always the one that stopped the order.
"""
import logging
import secrets
import string
from typing import List, Optional, Tuple

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from cart import Cart, CartProduct, delivery_fee
from catalog import COLLECTION as PRODUCTS, find_product
from customers import COLLECTION as CUSTOMERS, find_customer, record_order, resolve_customer
from database import create_document, to_object_id, utcnow
from errors import (
    ConflictError,
    EmptyCartError,
    InsufficientStockError,
    MissingCustomerInfoError,
    ProductNotFoundError,
    ValidationError,
)
from orders import COLLECTION as ORDERS, compute_total, find_order
from schemas import CheckoutRequest, Order, OrderCreate, OrderLine, OrderStatus, PaymentStatus

logger = logging.getLogger("storefront.checkout")

ORDER_NUMBER_ATTEMPTS = 5
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now=None) -> str:
    now = now or utcnow()
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d%H%M%S}-{suffix}"


def snapshot_lines(cart: Cart) -> List[OrderLine]:
    return [
        OrderLine(
            product_id=item.product.id,
            product_name=item.product.name,
            sku=item.product.sku,
            category=item.product.category,
            quantity=item.quantity,
            unit_price=item.product.price,
            line_total=round(item.product.price * item.quantity, 2),
        )
        for item in cart.items
    ]


def _check_contact(request: CheckoutRequest) -> None:
    missing = [name for name in ("name", "phone") if not (getattr(request.customer, name) or "").strip()]
    if missing:
        raise MissingCustomerInfoError(missing)


def _reserve_stock(db: Database, lines: List[OrderLine]) -> List[Tuple[object, int]]:
    reserved = []
    for line in lines:
        oid = to_object_id(line.product_id)
        result = None
        if oid is not None:
            result = db[PRODUCTS].update_one(
                {"_id": oid, "stock": {"$gte": line.quantity}},
                {"$inc": {"stock": -line.quantity}, "$set": {"updated_at": utcnow()}},
            )
        if result is None or result.modified_count == 0:
            _release_stock(db, reserved)
            current = db[PRODUCTS].find_one({"_id": oid}) if oid is not None else None
            if current is None:
                raise ProductNotFoundError(line.product_id)
            raise InsufficientStockError(line.product_id, line.product_name, line.quantity,
                                         current.get("stock", 0))
        reserved.append((oid, line.quantity))
    return reserved


def _release_stock(db: Database, reserved: List[Tuple[object, int]]) -> None:
    for oid, quantity in reserved:
        try:
            db[PRODUCTS].update_one({"_id": oid}, {"$inc": {"stock": quantity}})
        except PyMongoError:
            logger.error(f"Failed to release {quantity} units of product {oid}", exc_info=True)


def _insert_order(db: Database, order: Order) -> str:
    data = order.model_dump(mode="json")
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        try:
            return create_document(db, ORDERS, data)
        except DuplicateKeyError:
            logger.warning(f"Order number collision on {data['order_number']}, regenerating")
            data["order_number"] = generate_order_number()
    raise ConflictError("Could not allocate a unique order number", field="order_number")


def compose_order(db: Database, cart: Cart, request: CheckoutRequest, *,
                  created_by: Optional[str] = None, reserve_stock: bool = True) -> dict:
    """Create an order from ``cart`` and return the stored order document.

    Raises EmptyCartError, MissingCustomerInfoError, ValidationError,
    CustomerNotFoundError or InsufficientStockError before anything is
    written. On success the customer's statistics are updated and the cart
    is cleared.
    """
    if cart.is_empty():
        raise EmptyCartError()

    customer_doc = None
    if request.customer_id:
        customer_doc = find_customer(db, request.customer_id)
    else:
        _check_contact(request)

    lines = snapshot_lines(cart)
    subtotal = round(sum(line.line_total for line in lines), 2)
    shipping_fee = delivery_fee(request.delivery_method)
    if request.discount > subtotal + request.tax + shipping_fee:
        raise ValidationError("Discount exceeds the order amount", field="discount")
    total = compute_total(subtotal, request.tax, request.discount, shipping_fee)

    reserved = _reserve_stock(db, lines) if reserve_stock else []
    order_id = None
    new_customer = False
    try:
        if customer_doc is None:
            customer_doc, new_customer = resolve_customer(db, request.customer)
        order = Order(
            order_number=generate_order_number(),
            customer_id=str(customer_doc["_id"]),
            customer_name=customer_doc.get("name") or request.customer.name,
            items=lines,
            subtotal=subtotal,
            tax=request.tax,
            discount=request.discount,
            shipping_fee=shipping_fee,
            total=total,
            status=OrderStatus.pending,
            payment_status=PaymentStatus.pending,
            payment_method=request.payment_method,
            delivery_method=request.delivery_method,
            shipping_address=request.customer.address or customer_doc.get("address"),
            notes=request.notes,
            created_by=created_by,
        )
        order_id = _insert_order(db, order)
        record_order(db, customer_doc["_id"], total, utcnow())
    except Exception:
        if order_id is not None:
            db[ORDERS].delete_one({"_id": to_object_id(order_id)})
        if new_customer:
            db[CUSTOMERS].delete_one({"_id": customer_doc["_id"]})
        _release_stock(db, reserved)
        raise

    cart.clear()
    stored = find_order(db, order_id)
    logger.info(f"Created order {stored['order_number']} for customer {stored['customer_id']}: total {total}")
    return stored


def cart_from_items(db: Database, payload: OrderCreate) -> Cart:
    """Build a transient cart from posted lines using the current product records."""
    cart = Cart()
    for line in payload.items:
        doc = find_product(db, line.product_id)
        if not doc.get("is_active", True):
            raise ValidationError(f"Product is not available: {doc.get('name')}", field="items")
        product = CartProduct(
            id=str(doc["_id"]),
            name=doc["name"],
            price=float(doc["price"]),
            stock=int(doc.get("stock", 0)),
            category=doc.get("category"),
            sku=doc.get("sku"),
            image=doc.get("image"),
        )
        existing = cart.get(product.id)
        requested = line.quantity + (existing.quantity if existing else 0)
        if requested > product.stock:
            raise InsufficientStockError(product.id, product.name, requested, product.stock)
        cart.add_item(product, line.quantity)
    return cart
