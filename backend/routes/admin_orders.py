"""Admin Orders Routes - list, filter and summarize checkout orders."""
from fastapi import APIRouter, HTTPException, Request, Query, status
from typing import Optional
import logging

from middleware import admin_route_guard
from services import order_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/orders", tags=["admin-orders"])


@router.get("")
async def list_orders(
    request: Request,
    search: Optional[str] = Query(None, description="Order id, checkout session id or payment intent id"),
    status_filter: Optional[str] = Query(None, alias="status", description="all, pending, completed, canceled"),
    date_filter: Optional[str] = Query(None, description="7d, 30d, 90d"),
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
):
    await admin_route_guard(request)
    try:
        return await order_service.list_orders(search, status_filter, date_filter, limit, skip)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {status_filter}")


@router.get("/{order_id}")
async def get_order(request: Request, order_id: str):
    await admin_route_guard(request)
    order = await order_service.get_order(order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order
