"""
Read-only reporting over the order store.

Dates are UTC calendar dates. The today/month/year figures count every
order, cancelled ones included; the sales series and the category breakdown
leave cancelled orders out.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional

from pymongo.database import Database

from catalog import low_stock_documents
from customers import COLLECTION as CUSTOMERS
from database import utcnow
from orders import COLLECTION as ORDERS
from schemas import (
    Alerts,
    CategoryRevenue,
    DashboardOverview,
    OrderStatus,
    PeriodStats,
    RecentOrder,
    SalesBucket,
    TopProduct,
    TotalStats,
)

TOP_LIMIT = 5


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _period(db: Database, since: Optional[datetime], until: Optional[datetime] = None) -> PeriodStats:
    bounds = {}
    if since is not None:
        bounds["$gte"] = since
    if until is not None:
        bounds["$lt"] = until
    pipeline = []
    if bounds:
        pipeline.append({"$match": {"created_at": bounds}})
    pipeline.append({"$group": {"_id": None, "orders": {"$sum": 1}, "revenue": {"$sum": "$total"}}})
    rows = list(db[ORDERS].aggregate(pipeline))
    if not rows:
        return PeriodStats()
    return PeriodStats(orders=rows[0]["orders"], revenue=round(rows[0]["revenue"], 2))


def top_products(db: Database, limit: int = TOP_LIMIT) -> List[TopProduct]:
    pipeline = [
        {"$unwind": "$items"},
        {
            "$group": {
                "_id": "$items.product_id",
                "product_name": {"$first": "$items.product_name"},
                "total_sold": {"$sum": "$items.quantity"},
                "total_revenue": {"$sum": "$items.line_total"},
            }
        },
        {"$sort": {"total_sold": -1, "_id": 1}},
        {"$limit": limit},
    ]
    return [
        TopProduct(
            product_id=str(row["_id"]),
            product_name=row.get("product_name"),
            total_sold=row["total_sold"],
            total_revenue=round(row["total_revenue"], 2),
        )
        for row in db[ORDERS].aggregate(pipeline)
    ]


def overview(db: Database, now: Optional[datetime] = None) -> DashboardOverview:
    now = now or utcnow()
    start_of_day = _start_of_day(now)
    start_of_month = start_of_day.replace(day=1)
    start_of_year = start_of_month.replace(month=1)
    end_of_day = start_of_day + timedelta(days=1)

    total = _period(db, None)
    average = round(total.revenue / total.orders, 2) if total.orders else 0

    recent = db[ORDERS].find({}).sort("created_at", -1).limit(TOP_LIMIT)

    return DashboardOverview(
        today=_period(db, start_of_day, end_of_day),
        month=_period(db, start_of_month, end_of_day),
        year=_period(db, start_of_year, end_of_day),
        total=TotalStats(
            orders=total.orders,
            revenue=total.revenue,
            average_order_value=average,
            customers=db[CUSTOMERS].count_documents({"is_active": True}),
        ),
        alerts=Alerts(low_stock_products=len(low_stock_documents(db))),
        recent_orders=[
            RecentOrder(
                order_number=doc["order_number"],
                customer_name=doc.get("customer_name"),
                total=doc["total"],
                created_at=doc.get("created_at"),
            )
            for doc in recent
        ],
        top_products=top_products(db),
    )


def _window(db: Database, days: int, now: Optional[datetime]):
    now = now or utcnow()
    today = _start_of_day(now)
    since = today - timedelta(days=days)
    until = today + timedelta(days=1)
    return db[ORDERS].find(
        {
            "created_at": {"$gte": since, "$lt": until},
            "status": {"$ne": OrderStatus.cancelled.value},
        }
    ).sort("created_at", 1)


def sales_series(db: Database, days: int = 30, now: Optional[datetime] = None) -> List[SalesBucket]:
    """One bucket per day in [today - days, today] that has a non-cancelled order, oldest first.

    Days without orders are skipped rather than filled with zero buckets.
    """
    buckets = {}
    for doc in _window(db, days, now):
        day = doc["created_at"].date()
        orders, revenue = buckets.get(day, (0, 0.0))
        buckets[day] = (orders + 1, revenue + doc.get("total", 0))

    return [
        SalesBucket(year=day.year, month=day.month, day=day.day, orders=orders, revenue=round(revenue, 2))
        for day, (orders, revenue) in sorted(buckets.items())
    ]


def revenue_by_category(db: Database, days: int = 30, now: Optional[datetime] = None) -> List[CategoryRevenue]:
    revenue = defaultdict(float)
    orders = defaultdict(set)
    for doc in _window(db, days, now):
        for line in doc.get("items", []):
            category = line.get("category") or "Uncategorized"
            revenue[category] += line.get("line_total", 0)
            orders[category].add(doc["_id"])

    rows = [
        CategoryRevenue(category=category, revenue=round(amount, 2), orders=len(orders[category]))
        for category, amount in revenue.items()
    ]
    return sorted(rows, key=lambda row: row.revenue, reverse=True)
