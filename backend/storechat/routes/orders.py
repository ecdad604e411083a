# /storechat/routes/orders.py

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from storechat.config.settings import settings
from storechat.models.api import APIResponse, OrderCreate, OrderStatusUpdate, OrderUpdate
from storechat.models.domain import Tenant
from storechat.services.customer_info import parse_customer_info
from storechat.services.db_service import db_service, RecordNotFoundError
from storechat.services.order_directive import UNKNOWN_PRODUCT_ID, ZERO_AMOUNT
from storechat.utils.dependencies import get_current_tenant
from storechat.utils.metrics import order_counter

# Orders entered from the dashboard or other API clients. Chat orders are
# created by the conversation pipeline, not here.

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


def _order_fields(body: OrderCreate) -> dict:
    customer_name = body.customer_name or ""
    customer_phone = body.customer_phone or ""
    customer_address = body.customer_address or ""

    # Older clients send the customer's details as one free-text field
    if body.customer_info and not (customer_name or customer_phone or customer_address):
        parsed = parse_customer_info(body.customer_info)
        customer_name, customer_phone, customer_address = parsed.name, parsed.phone, parsed.address

    product_id = body.product_id or UNKNOWN_PRODUCT_ID
    total_amount = body.total_amount or ZERO_AMOUNT
    items = [item.model_dump() for item in body.items] if body.items else [{
        "product_id": product_id,
        "product_name": body.product_name,
        "quantity": body.quantity,
        "price": total_amount,
    }]

    return {
        "product_id": product_id,
        "product_name": body.product_name,
        "quantity": body.quantity,
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "customer_address": customer_address,
        "total_amount": total_amount,
        "notes": body.notes,
        "status": "pending",
        "source": body.source.value,
        "payment_method": body.payment_method.value,
        "items": items,
    }


@router.get("", response_model=APIResponse)
async def list_orders(tenant: Tenant = Depends(get_current_tenant)):
    orders = await db_service.get_orders(tenant.id)
    return APIResponse(success=True, message="Orders retrieved", data={"orders": orders}, version=settings.api_version)


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def add_order(body: OrderCreate, tenant: Tenant = Depends(get_current_tenant)):
    order = await db_service.add_order(tenant.id, _order_fields(body))
    order_counter.labels(source=body.source.value, status="created").inc()
    logger.info(f"Order {order['id']} created for tenant {tenant.id} from {body.source.value}")
    return APIResponse(success=True, message="Order created", data={"order": order}, version=settings.api_version)


@router.put("/{order_id}/status", response_model=APIResponse)
async def update_order_status(order_id: str, body: OrderStatusUpdate, tenant: Tenant = Depends(get_current_tenant)):
    try:
        order = await db_service.update_order_status(tenant.id, order_id, body.status.value)
    except RecordNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return APIResponse(success=True, message="Order status updated", data={"order": order}, version=settings.api_version)


@router.put("/{order_id}", response_model=APIResponse)
async def update_order(order_id: str, body: OrderUpdate, tenant: Tenant = Depends(get_current_tenant)):
    updates = body.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    try:
        order = await db_service.update_order(tenant.id, order_id, updates)
    except RecordNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return APIResponse(success=True, message="Order updated", data={"order": order}, version=settings.api_version)


@router.delete("/{order_id}", response_model=APIResponse)
async def delete_order(order_id: str, tenant: Tenant = Depends(get_current_tenant)):
    try:
        await db_service.delete_order(tenant.id, order_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return APIResponse(success=True, message="Order deleted", version=settings.api_version)
