"""Customer records and the order statistics kept on them."""
import logging
import re
from datetime import datetime
from typing import Optional, Tuple

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, paginate, serialize_doc, to_object_id, utcnow
from errors import CustomerNotFoundError
from schemas import Customer, CustomerContact, CustomerList, CustomerOut, CustomerStats, CustomerUpdate

logger = logging.getLogger("storefront.customers")

COLLECTION = "customer"


def serialize_customer(doc) -> CustomerOut:
    return CustomerOut(**serialize_doc(doc))


def list_customers(db: Database, search: Optional[str] = None, is_active: Optional[bool] = None,
                   page: int = 1, limit: int = 10) -> CustomerList:
    filter_dict = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filter_dict["$or"] = [{"name": pattern}, {"email": pattern}, {"phone": pattern}]
    if is_active is not None:
        filter_dict["is_active"] = is_active

    total = db[COLLECTION].count_documents(filter_dict)
    docs = get_documents(db, COLLECTION, filter_dict, limit=limit, skip=(page - 1) * limit,
                         sort=[("created_at", -1)])
    return CustomerList(
        customers=[serialize_customer(d) for d in docs],
        pagination=paginate(total, page, limit),
    )


def find_customer(db: Database, customer_id: str) -> dict:
    oid = to_object_id(customer_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid is not None else None
    if not doc:
        raise CustomerNotFoundError(customer_id)
    return doc


def get_customer(db: Database, customer_id: str) -> CustomerOut:
    return serialize_customer(find_customer(db, customer_id))


def create_customer(db: Database, payload: Customer) -> CustomerOut:
    data = payload.model_dump()
    data.update(total_orders=0, total_spent=0.0, last_order_date=None)
    new_id = create_document(db, COLLECTION, data)
    return get_customer(db, new_id)


def update_customer(db: Database, customer_id: str, payload: CustomerUpdate) -> CustomerOut:
    oid = to_object_id(customer_id)
    if oid is None:
        raise CustomerNotFoundError(customer_id)
    changes = payload.model_dump(exclude_none=True)
    changes["updated_at"] = utcnow()
    doc = db[COLLECTION].find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise CustomerNotFoundError(customer_id)
    return serialize_customer(doc)


def delete_customer(db: Database, customer_id: str) -> None:
    oid = to_object_id(customer_id)
    result = db[COLLECTION].delete_one({"_id": oid}) if oid is not None else None
    if result is None or result.deleted_count == 0:
        raise CustomerNotFoundError(customer_id)


def customer_stats(db: Database, customer_id: str) -> CustomerStats:
    doc = find_customer(db, customer_id)
    total_orders = doc.get("total_orders", 0)
    total_spent = doc.get("total_spent", 0.0)
    return CustomerStats(
        total_orders=total_orders,
        total_spent=total_spent,
        last_order_date=doc.get("last_order_date"),
        average_order_value=round(total_spent / total_orders, 2) if total_orders > 0 else 0,
    )


def resolve_customer(db: Database, contact: CustomerContact,
                     customer_id: Optional[str] = None) -> Tuple[dict, bool]:
    """Find the customer an order belongs to, creating one from the contact details if needed.

    Returns the customer document and whether it was inserted by this call.
    """
    if customer_id:
        return find_customer(db, customer_id), False
    if contact.phone:
        doc = db[COLLECTION].find_one({"phone": contact.phone.strip()})
        if doc:
            return doc, False
    created = create_customer(db, Customer(
        name=contact.name.strip(),
        email=contact.email,
        phone=contact.phone.strip() or None,
        address=contact.address,
    ))
    logger.info(f"Created customer {created.id} from checkout")
    return find_customer(db, created.id), True


def record_order(db: Database, customer_oid, total: float, when: datetime) -> None:
    db[COLLECTION].update_one(
        {"_id": customer_oid},
        {
            "$inc": {"total_orders": 1, "total_spent": total},
            "$set": {"last_order_date": when, "updated_at": when},
        },
    )
