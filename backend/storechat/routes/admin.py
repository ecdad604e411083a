# /storechat/routes/admin.py

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from storechat.config.settings import settings
from storechat.models.api import APIResponse, ActivationCodeCreate
from storechat.services.db_service import db_service
from storechat.utils.dependencies import require_admin

# Operator endpoints: tenants, activation codes and system-wide statistics.

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)]
)


@router.get("/users", response_model=APIResponse)
async def list_users():
    users = await db_service.list_users()
    return APIResponse(success=True, message="Users retrieved", data={"users": users}, version=settings.api_version)


@router.get("/codes", response_model=APIResponse)
async def list_codes():
    codes = await db_service.list_activation_codes()
    return APIResponse(success=True, message="Activation codes retrieved", data={"codes": codes}, version=settings.api_version)


@router.post("/codes", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def create_code(body: ActivationCodeCreate, admin: dict = Depends(require_admin)):
    description = body.description or f"{body.type.value} activation code"
    code = await db_service.create_activation_code(body.type.value, description)
    logger.info(f"Admin {admin.get('sub')} created {code['type']} activation code {code['code']}")
    return APIResponse(success=True, message="Activation code created", data={"code": code}, version=settings.api_version)


@router.delete("/codes/{code}", response_model=APIResponse)
async def delete_code(code: str):
    if not await db_service.delete_activation_code(code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activation code not found")
    return APIResponse(success=True, message="Activation code deleted", version=settings.api_version)


@router.get("/stats", response_model=APIResponse)
async def system_stats():
    """Totals, order status counts and recent order activity across all tenants."""
    stats = await db_service.get_system_stats()
    return APIResponse(success=True, message="System statistics retrieved", data=stats, version=settings.api_version)
