# /storechat/routes/products.py

from fastapi import APIRouter, Depends, HTTPException, status

from storechat.config.settings import settings
from storechat.models.api import APIResponse, ProductCreate, ProductUpdate
from storechat.models.domain import Tenant
from storechat.services.db_service import db_service, RecordNotFoundError
from storechat.utils.dependencies import get_current_tenant

router = APIRouter(
    prefix="/products",
    tags=["Products"]
)


@router.get("", response_model=APIResponse)
async def list_products(tenant: Tenant = Depends(get_current_tenant)):
    products = await db_service.get_products(tenant.id)
    return APIResponse(success=True, message="Products retrieved", data={"products": products}, version=settings.api_version)


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def add_product(body: ProductCreate, tenant: Tenant = Depends(get_current_tenant)):
    product = await db_service.add_product(tenant.id, body.model_dump())
    return APIResponse(success=True, message="Product added", data={"product": product}, version=settings.api_version)


@router.put("/{product_id}", response_model=APIResponse)
async def update_product(product_id: str, body: ProductUpdate, tenant: Tenant = Depends(get_current_tenant)):
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one field is required")
    try:
        product = await db_service.update_product(tenant.id, product_id, updates)
    except RecordNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return APIResponse(success=True, message="Product updated", data={"product": product}, version=settings.api_version)


@router.delete("/{product_id}", response_model=APIResponse)
async def delete_product(product_id: str, tenant: Tenant = Depends(get_current_tenant)):
    try:
        await db_service.delete_product(tenant.id, product_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return APIResponse(success=True, message="Product deleted", version=settings.api_version)
