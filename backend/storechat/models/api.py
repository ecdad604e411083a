# /storechat/models/api.py

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any
from datetime import datetime

from storechat.models.domain import (
    ActivationType,
    Channel,
    OrderItem,
    OrderSource,
    OrderStatus,
    PaymentMethod,
)

# Request and response bodies for the HTTP API.

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6, max_length=255)
    email: str = ""
    name: str = ""

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, max_length=255)

class AdminLoginRequest(LoginRequest):
    pass

class AuthResponse(BaseModel):
    token: str
    user: Dict[str, Any]

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class ActivateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str

# --- Catalog ---

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    price: str = Field(..., min_length=1)
    description: str = ""
    category: str = ""
    image: str = ""
    in_stock: bool = True

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    price: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    in_stock: Optional[bool] = None

# --- Orders ---

class OrderCreate(BaseModel):
    product_name: str = Field(..., min_length=1)
    product_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    customer_info: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    total_amount: Optional[str] = None
    notes: str = ""
    source: OrderSource = OrderSource.MANUAL
    payment_method: PaymentMethod = PaymentMethod.CASH
    items: Optional[List[OrderItem]] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class OrderUpdate(BaseModel):
    product_name: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[int] = Field(default=None, ge=1)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    total_amount: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[OrderStatus] = None
    payment_method: Optional[PaymentMethod] = None

# --- Store profile ---

class StoreInfoUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None

# --- Chat ---

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4096)
    channel: Channel = Channel.TEST

class ChatResponse(BaseModel):
    message: str
    message_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    order_status: Optional[str] = None
    order_created: bool = False

# --- Admin ---

class ActivationCodeCreate(BaseModel):
    type: ActivationType
    description: Optional[str] = None
