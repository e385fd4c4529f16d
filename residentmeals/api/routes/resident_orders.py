import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from residentmeals.api.dependencies import get_actor, get_lifecycle
from residentmeals.infra.order_export import export_order_csv
from residentmeals.infra.pdf_utils import generate_pdf_for_order
from residentmeals.logic.deadline.calendar import next_ordering_window
from residentmeals.logic.ordering.access import Actor
from residentmeals.logic.ordering.lifecycle import OrderLifecycle
from residentmeals.utilities.validators import OrderCreateInput, OrderUpdateInput, SubmitPaymentInput

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/resident-orders/ordering-window")
def ordering_window(lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """The week new orders should cover and its submission deadline."""
    window = next_ordering_window(lifecycle.clock(), lifecycle.tz)
    return {"success": True, "data": window.to_dict()}


@router.get("/resident-orders")
def list_resident_orders(
    resident_id: Optional[str] = Query(default=None, alias="residentId"),
    status: Optional[str] = Query(default=None, pattern=r'^(draft|submitted|paid|cancelled)$'),
    payment_status: Optional[str] = Query(default=None, alias="paymentStatus",
                                          pattern=r'^(pending|paid|failed|refunded)$'),
    week_start_date: Optional[date] = Query(default=None, alias="weekStartDate"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
):
    orders, total = lifecycle.list_orders(
        actor, resident_id=resident_id, status=status, payment_status=payment_status,
        week_start_date=week_start_date, page=page, limit=limit,
    )
    return {
        "success": True,
        "data": [o.to_public_dict() for o in orders],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit,
        },
    }


@router.get("/resident-orders/{order_id}")
def get_resident_order(order_id: str, actor: Actor = Depends(get_actor),
                       lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order = lifecycle.get(actor, order_id)
    return {"success": True, "data": order.to_public_dict()}


@router.post("/resident-orders", status_code=201)
def create_resident_order(payload: OrderCreateInput, actor: Actor = Depends(get_actor),
                          lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """Create a draft order for a resident (editable until the Sunday deadline)."""
    order = lifecycle.create_draft(actor, payload)
    return {"success": True, "data": order.to_public_dict()}


@router.put("/resident-orders/{order_id}")
def update_resident_order(order_id: str, payload: OrderUpdateInput, actor: Actor = Depends(get_actor),
                          lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order = lifecycle.save_draft(actor, order_id, payload)
    return {"success": True, "data": order.to_public_dict(), "message": "Order updated successfully"}


@router.post("/resident-orders/{order_id}/submit-and-pay")
async def submit_and_pay(order_id: str, payload: Optional[SubmitPaymentInput] = None,
                         actor: Actor = Depends(get_actor),
                         lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """Submit the order and charge it. Calling it again on a paid order returns the same receipt."""
    payment_method_id = payload.payment_method_id if payload else None
    result = await lifecycle.submit_and_pay(actor, order_id, payment_method_id)
    if result.already_paid:
        message = "Order already paid"
    elif result.order.is_paid:
        message = "Order submitted and payment processed successfully"
    else:
        message = "Payment is being processed"
    return {"success": True, "data": result.to_dict(), "message": message}


@router.post("/resident-orders/{order_id}/cancel")
def cancel_resident_order(order_id: str, actor: Actor = Depends(get_actor),
                          lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order = lifecycle.cancel(actor, order_id)
    return {"success": True, "data": order.to_public_dict(), "message": "Order cancelled"}


@router.get("/resident-orders/{order_id}/export")
def export_resident_order(order_id: str,
                          format: str = Query(default="csv", pattern=r'^(csv|pdf)$'),
                          actor: Actor = Depends(get_actor),
                          lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    """Download one order as a spreadsheet or a printable sheet.

    ``format=csv`` (default) is a UTF-8 CSV with a BOM that opens directly in
    Excel; it replaces the older XLSX workbook download. ``format=pdf`` renders
    the same table with reportlab.
    """
    order = lifecycle.get(actor, order_id)
    if format == "pdf":
        content, media_type = generate_pdf_for_order(order), "application/pdf"
    else:
        content, media_type = export_order_csv(order), "text/csv; charset=utf-8"
    filename = f"meal-order-{order.order_number}.{format}"
    logger.info("Resident order exported: %s as %s by %s", order.id, format, actor.user_id)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
