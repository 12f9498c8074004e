import logging
import os
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import catalog
import checkout
import customers
import dashboard
import database
import orders
from database import ensure_indexes, get_db
from errors import InternalError, StoreError
from schemas import (
    CategoryRevenue,
    Customer,
    CustomerList,
    CustomerOut,
    CustomerStats,
    CustomerUpdate,
    DashboardOverview,
    OrderCreate,
    OrderList,
    OrderOut,
    Product,
    ProductList,
    ProductOut,
    ProductUpdate,
    SalesBucket,
    StatusUpdate,
)
from settings import get_settings

settings = get_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("storefront.api")

app = FastAPI(title="Storefront API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error handling ----------
@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(PyMongoError)
async def handle_database_error(request: Request, exc: PyMongoError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ---------- Startup ----------
@app.on_event("startup")
def prepare_database():
    if database.db is None:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
        return
    ensure_indexes(database.db)
    if settings.seed_demo_data:
        catalog.seed_products(database.db)


# ---------- Routes ----------
@app.get("/")
def health():
    return {"message": "Storefront API running"}


# Products
@app.get("/api/products", response_model=ProductList)
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    return catalog.list_products(db, search=search, category=category, is_active=is_active,
                                 page=page, limit=limit)


@app.get("/api/products/categories/list", response_model=List[str])
def list_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db)


@app.get("/api/products/alerts/low-stock", response_model=List[ProductOut])
def low_stock(db: Database = Depends(get_db)):
    return catalog.low_stock_products(db)


@app.get("/api/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id)


@app.post("/api/products", response_model=ProductOut, status_code=201)
def create_product(payload: Product, db: Database = Depends(get_db)):
    return catalog.create_product(db, payload)


@app.put("/api/products/{product_id}", response_model=ProductOut)
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db)):
    return catalog.update_product(db, product_id, payload)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}


# Customers
@app.get("/api/customers", response_model=CustomerList)
def list_customers(
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    return customers.list_customers(db, search=search, is_active=is_active, page=page, limit=limit)


@app.get("/api/customers/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    return customers.get_customer(db, customer_id)


@app.get("/api/customers/{customer_id}/stats", response_model=CustomerStats)
def get_customer_stats(customer_id: str, db: Database = Depends(get_db)):
    return customers.customer_stats(db, customer_id)


@app.post("/api/customers", response_model=CustomerOut, status_code=201)
def create_customer(payload: Customer, db: Database = Depends(get_db)):
    return customers.create_customer(db, payload)


@app.put("/api/customers/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: str, payload: CustomerUpdate, db: Database = Depends(get_db)):
    return customers.update_customer(db, customer_id, payload)


@app.delete("/api/customers/{customer_id}")
def delete_customer(customer_id: str, db: Database = Depends(get_db)):
    customers.delete_customer(db, customer_id)
    return {"message": "Customer deleted successfully"}


# Orders
@app.get("/api/orders", response_model=OrderList)
def list_orders(
    status: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    return orders.list_orders(db, status=status, payment_status=payment_status, search=search,
                              page=page, limit=limit)


@app.get("/api/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Database = Depends(get_db)):
    return orders.get_order(db, order_id)


@app.post("/api/orders", response_model=OrderOut, status_code=201)
def create_order(payload: OrderCreate, db: Database = Depends(get_db)):
    cart = checkout.cart_from_items(db, payload)
    doc = checkout.compose_order(db, cart, payload)
    return orders.serialize_order(doc)


@app.put("/api/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: str, payload: StatusUpdate, db: Database = Depends(get_db)):
    return orders.update_status(
        db,
        order_id,
        status=payload.status,
        payment_status=payload.payment_status,
        strict=settings.strict_status_transitions,
    )


# Dashboard
@app.get("/api/dashboard/overview", response_model=DashboardOverview)
def dashboard_overview(db: Database = Depends(get_db)):
    return dashboard.overview(db)


@app.get("/api/dashboard/sales-chart", response_model=List[SalesBucket])
def sales_chart(days: int = Query(30, ge=1, le=366), db: Database = Depends(get_db)):
    return dashboard.sales_series(db, days)


@app.get("/api/dashboard/revenue-by-category", response_model=List[CategoryRevenue])
def revenue_by_category(days: int = Query(30, ge=1, le=366), db: Database = Depends(get_db)):
    return dashboard.revenue_by_category(db, days)


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = database.db.name
            response["connection_status"] = "Connected"
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except PyMongoError as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
