"""Product catalog: admin CRUD, category list and low-stock alerts."""
import logging
import re
import secrets
import time
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, paginate, serialize_doc, to_object_id, utcnow
from errors import ConflictError, ProductNotFoundError
from schemas import Product, ProductList, ProductOut, ProductUpdate

logger = logging.getLogger("storefront.catalog")

COLLECTION = "product"


def generate_sku() -> str:
    return f"SKU-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


def serialize_product(doc) -> ProductOut:
    return ProductOut(**serialize_doc(doc))


def list_products(db: Database, search: Optional[str] = None, category: Optional[str] = None,
                  is_active: Optional[bool] = None, page: int = 1, limit: int = 10) -> ProductList:
    filter_dict = {}
    if category:
        filter_dict["category"] = category
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filter_dict["$or"] = [{"name": pattern}, {"description": pattern}, {"sku": pattern}]
    if is_active is not None:
        filter_dict["is_active"] = is_active

    total = db[COLLECTION].count_documents(filter_dict)
    docs = get_documents(db, COLLECTION, filter_dict, limit=limit, skip=(page - 1) * limit,
                         sort=[("created_at", -1)])
    return ProductList(
        products=[serialize_product(d) for d in docs],
        pagination=paginate(total, page, limit),
    )


def find_product(db: Database, product_id: str) -> dict:
    oid = to_object_id(product_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid is not None else None
    if not doc:
        raise ProductNotFoundError(product_id)
    return doc


def get_product(db: Database, product_id: str) -> ProductOut:
    return serialize_product(find_product(db, product_id))


def create_product(db: Database, payload: Product) -> ProductOut:
    data = payload.model_dump()
    if not data.get("sku"):
        data["sku"] = generate_sku()
    try:
        new_id = create_document(db, COLLECTION, data)
    except DuplicateKeyError:
        raise ConflictError(f"SKU already exists: {data['sku']}", field="sku")
    logger.info(f"Created product {new_id} ({data['name']})")
    return get_product(db, new_id)


def update_product(db: Database, product_id: str, payload: ProductUpdate) -> ProductOut:
    oid = to_object_id(product_id)
    if oid is None:
        raise ProductNotFoundError(product_id)
    changes = payload.model_dump(exclude_none=True)
    changes["updated_at"] = utcnow()
    doc = db[COLLECTION].find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise ProductNotFoundError(product_id)
    return serialize_product(doc)


def delete_product(db: Database, product_id: str) -> None:
    oid = to_object_id(product_id)
    result = db[COLLECTION].delete_one({"_id": oid}) if oid is not None else None
    if result is None or result.deleted_count == 0:
        raise ProductNotFoundError(product_id)
    logger.info(f"Deleted product {product_id}")


def list_categories(db: Database) -> List[str]:
    return sorted(c for c in db[COLLECTION].distinct("category") if c)


def low_stock_documents(db: Database) -> List[dict]:
    docs = get_documents(db, COLLECTION, {"is_active": True}, sort=[("stock", 1)])
    return [d for d in docs if d.get("stock", 0) <= d.get("min_stock", 0)]


def low_stock_products(db: Database) -> List[ProductOut]:
    return [serialize_product(d) for d in low_stock_documents(db)]


DEMO_MENU = [
    {"name": "Pho Bo", "description": "Beef noodle soup with fresh herbs.", "price": 65000,
     "category": "Noodles", "stock": 50, "min_stock": 5, "tags": ["beef", "soup"]},
    {"name": "Bun Cha", "description": "Grilled pork with rice vermicelli and dipping sauce.", "price": 55000,
     "category": "Noodles", "stock": 40, "min_stock": 5, "tags": ["pork", "grill"]},
    {"name": "Banh Mi Thit", "description": "Baguette with pate, cold cuts and pickles.", "price": 30000,
     "category": "Bread", "stock": 80, "min_stock": 10, "tags": ["street food"]},
    {"name": "Ca Phe Sua Da", "description": "Iced coffee with condensed milk.", "price": 25000,
     "category": "Drinks", "stock": 100, "min_stock": 10, "tags": ["coffee", "iced"]},
]


def seed_products(db: Database) -> int:
    """Insert the demo menu when the catalog is empty. Returns the number inserted."""
    if db[COLLECTION].count_documents({}) > 0:
        return 0
    for item in DEMO_MENU:
        create_product(db, Product(**item))
    logger.info(f"Seeded {len(DEMO_MENU)} demo products")
    return len(DEMO_MENU)
