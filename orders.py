"""
Order store and the order/payment status machine.

Line items are never rewritten after creation; only ``status``,
``payment_status`` and ``updated_at`` change once an order exists.
"""
import logging
import re
from typing import Dict, Optional, Set, Union

from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_documents, paginate, serialize_doc, to_object_id, utcnow
from errors import ConflictError, InvalidTransitionError, OrderNotFoundError, ValidationError
from schemas import OrderList, OrderOut, OrderStatus, PaymentStatus

logger = logging.getLogger("storefront.orders")

COLLECTION = "order"

ORDER_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.pending: {OrderStatus.processing, OrderStatus.cancelled},
    OrderStatus.processing: {OrderStatus.shipped, OrderStatus.cancelled},
    OrderStatus.shipped: {OrderStatus.delivered, OrderStatus.cancelled},
    OrderStatus.delivered: set(),
    OrderStatus.cancelled: set(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
    PaymentStatus.pending: {PaymentStatus.paid, PaymentStatus.failed},
    PaymentStatus.failed: {PaymentStatus.pending},
    PaymentStatus.paid: {PaymentStatus.refunded},
    PaymentStatus.refunded: set(),
}


def can_transition(current, requested, graph) -> bool:
    return requested == current or requested in graph.get(current, set())


def _coerce(value, enum_cls, field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}', expected one of: {allowed}", field=field)


def compute_total(subtotal: float, tax: float, discount: float, shipping_fee: float) -> float:
    return round(subtotal + tax - discount + shipping_fee, 2)


def verify_total(order: Union[dict, OrderOut]) -> bool:
    """Recompute the total from the stored components and compare it with the stored total."""
    if not isinstance(order, dict):
        order = order.model_dump()
    subtotal = round(sum(line["line_total"] for line in order["items"]), 2)
    if subtotal != order["subtotal"]:
        return False
    expected = compute_total(order["subtotal"], order.get("tax", 0), order.get("discount", 0),
                             order.get("shipping_fee", 0))
    return expected == order["total"]


def serialize_order(doc) -> OrderOut:
    return OrderOut(**serialize_doc(doc))


def list_orders(db: Database, status: Optional[str] = None, payment_status: Optional[str] = None,
                search: Optional[str] = None, page: int = 1, limit: int = 10) -> OrderList:
    filter_dict = {}
    if status:
        filter_dict["status"] = _coerce(status, OrderStatus, "status").value
    if payment_status:
        filter_dict["payment_status"] = _coerce(payment_status, PaymentStatus, "payment_status").value
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filter_dict["$or"] = [{"order_number": pattern}, {"customer_name": pattern}]

    total = db[COLLECTION].count_documents(filter_dict)
    docs = get_documents(db, COLLECTION, filter_dict, limit=limit, skip=(page - 1) * limit,
                         sort=[("created_at", -1)])
    return OrderList(
        orders=[serialize_order(d) for d in docs],
        pagination=paginate(total, page, limit),
    )


def find_order(db: Database, order_id: str) -> dict:
    oid = to_object_id(order_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid is not None else None
    if not doc:
        raise OrderNotFoundError(order_id)
    return doc


def get_order(db: Database, order_id: str) -> OrderOut:
    return serialize_order(find_order(db, order_id))


def update_status(db: Database, order_id: str, status=None, payment_status=None,
                  strict: bool = True) -> OrderOut:
    """Apply a partial status/payment-status change.

    Only the supplied fields change. With ``strict`` the change must follow
    ORDER_TRANSITIONS / PAYMENT_TRANSITIONS; without it any known value is
    accepted. The write is conditioned on the statuses that were validated,
    so a concurrent change is reported as a conflict instead of being
    overwritten.
    """
    status = _coerce(status, OrderStatus, "status")
    payment_status = _coerce(payment_status, PaymentStatus, "payment_status")

    doc = find_order(db, order_id)
    current_status = OrderStatus(doc["status"])
    current_payment = PaymentStatus(doc["payment_status"])

    if strict:
        if status is not None and not can_transition(current_status, status, ORDER_TRANSITIONS):
            raise InvalidTransitionError("status", current_status.value, status.value)
        if payment_status is not None and not can_transition(current_payment, payment_status,
                                                             PAYMENT_TRANSITIONS):
            raise InvalidTransitionError("payment_status", current_payment.value, payment_status.value)

    changes = {"updated_at": utcnow()}
    if status is not None:
        changes["status"] = status.value
    if payment_status is not None:
        changes["payment_status"] = payment_status.value

    updated = db[COLLECTION].find_one_and_update(
        {"_id": doc["_id"], "status": current_status.value, "payment_status": current_payment.value},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ConflictError(f"Order {order_id} was modified concurrently, retry the update")

    logger.info(
        f"Order {doc['order_number']}: status {current_status.value} -> {updated['status']}, "
        f"payment {current_payment.value} -> {updated['payment_status']}"
    )
    return serialize_order(updated)
