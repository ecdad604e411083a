# /storechat/routes/store.py

from fastapi import APIRouter, Depends, HTTPException, status

from storechat.config.settings import settings
from storechat.models.api import APIResponse, StoreInfoUpdate
from storechat.models.domain import Tenant
from storechat.services.db_service import db_service
from storechat.utils.dependencies import get_current_tenant

router = APIRouter(
    prefix="/store",
    tags=["Store"]
)


@router.get("/info", response_model=APIResponse)
async def get_store_info(tenant: Tenant = Depends(get_current_tenant)):
    store = await db_service.get_store_info(tenant.id)
    return APIResponse(success=True, message="Store info retrieved", data={"store": store}, version=settings.api_version)


@router.post("/info", response_model=APIResponse)
async def update_store_info(body: StoreInfoUpdate, tenant: Tenant = Depends(get_current_tenant)):
    updates = {key: value.strip() for key, value in body.model_dump(exclude_none=True).items()}
    if not any(updates.values()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one field is required")
    store = await db_service.update_store_info(tenant.id, updates)
    return APIResponse(success=True, message="Store info updated", data={"store": store}, version=settings.api_version)
