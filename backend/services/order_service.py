"""Orders created by checkout, and the admin dashboard built on them."""
import logging
import re
import uuid
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Optional

from database import database
from models import OrderStatus

logger = logging.getLogger(__name__)

DATE_FILTERS = {"7d": 7, "30d": 30, "90d": 90}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def create_pending_order(
    checkout_session_id: str,
    result_id: str,
    amount_total: int,
    currency: str,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    db = database.get_db()
    now = _now_iso()
    order = {
        "order_id": str(uuid.uuid4()),
        "checkout_session_id": checkout_session_id,
        "payment_intent_id": None,
        "result_id": result_id,
        "browser_session_id": session_id,
        "amount_total": amount_total,
        "currency": (currency or "").lower(),
        "status": OrderStatus.PENDING.value,
        "customer_email": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.orders.insert_one(order)
    order.pop("_id", None)
    return order


async def get_order_by_checkout_session(checkout_session_id: str) -> Optional[Dict[str, Any]]:
    db = database.get_db()
    return await db.orders.find_one({"checkout_session_id": checkout_session_id}, {"_id": 0})


async def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    db = database.get_db()
    return await db.orders.find_one({"order_id": order_id}, {"_id": 0})


async def mark_order_completed(
    checkout_session_id: str,
    payment_intent_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    amount_total: Optional[int] = None,
) -> bool:
    """Pending -> completed. Returns True only when this call made the transition."""
    db = database.get_db()
    update = {"status": OrderStatus.COMPLETED.value, "updated_at": _now_iso(), "completed_at": _now_iso()}
    if payment_intent_id:
        update["payment_intent_id"] = payment_intent_id
    if customer_email:
        update["customer_email"] = customer_email
    if amount_total is not None:
        update["amount_total"] = amount_total
    result = await db.orders.update_one(
        {"checkout_session_id": checkout_session_id, "status": {"$ne": OrderStatus.COMPLETED.value}},
        {"$set": update},
    )
    return result.modified_count > 0


async def mark_order_canceled(checkout_session_id: str, reason: str = "canceled") -> bool:
    db = database.get_db()
    result = await db.orders.update_one(
        {"checkout_session_id": checkout_session_id, "status": OrderStatus.PENDING.value},
        {"$set": {"status": OrderStatus.CANCELED.value, "cancel_reason": reason, "updated_at": _now_iso()}},
    )
    return result.modified_count > 0


def build_order_query(
    search: Optional[str] = None,
    status: Optional[str] = None,
    date_filter: Optional[str] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [
            {"order_id": pattern},
            {"checkout_session_id": pattern},
            {"payment_intent_id": pattern},
        ]
    if status and status != "all":
        query["status"] = OrderStatus(status).value
    if date_filter in DATE_FILTERS:
        start = datetime.now(timezone.utc) - timedelta(days=DATE_FILTERS[date_filter])
        query["created_at"] = {"$gte": start.isoformat()}
    return query


def compute_order_stats(orders: List[Dict[str, Any]]) -> Dict[str, Any]:
    completed = [o for o in orders if o.get("status") == OrderStatus.COMPLETED.value]
    revenue_minor = sum(o.get("amount_total") or 0 for o in completed)
    return {
        "total": len(orders),
        "completed": len(completed),
        "pending": sum(1 for o in orders if o.get("status") == OrderStatus.PENDING.value),
        "canceled": sum(1 for o in orders if o.get("status") == OrderStatus.CANCELED.value),
        "revenue": round(revenue_minor / 100, 2),
    }


async def list_orders(
    search: Optional[str] = None,
    status: Optional[str] = None,
    date_filter: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
) -> Dict[str, Any]:
    db = database.get_db()
    query = build_order_query(search, status, date_filter)
    orders = await db.orders.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit).to_list(length=limit)
    total = await db.orders.count_documents(query)
    all_orders = await db.orders.find({}, {"_id": 0, "status": 1, "amount_total": 1}).to_list(length=100000)
    return {
        "orders": orders,
        "total": total,
        "stats": compute_order_stats(all_orders),
    }


async def get_dashboard_stats() -> Dict[str, Any]:
    db = database.get_db()
    total_users = await db.users.count_documents({})
    completed = await db.orders.find(
        {"status": OrderStatus.COMPLETED.value},
        {"_id": 0}
    ).sort("created_at", -1).to_list(length=100000)
    revenue_minor = sum(o.get("amount_total") or 0 for o in completed)
    return {
        "total_users": total_users,
        "total_orders": len(completed),
        "total_revenue": round(revenue_minor / 100, 2),
        "recent_orders": completed[:5],
    }


async def cancel_abandoned_orders(older_than_hours: int = 24) -> int:
    db = database.get_db()
    cutoff = (datetime.now(timezone.utc) - timedelta(hours=older_than_hours)).isoformat()
    result = await db.orders.update_many(
        {"status": OrderStatus.PENDING.value, "created_at": {"$lt": cutoff}},
        {"$set": {"status": OrderStatus.CANCELED.value, "cancel_reason": "abandoned", "updated_at": _now_iso()}},
    )
    return result.modified_count
