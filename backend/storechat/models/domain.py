# /storechat/models/domain.py

from enum import Enum
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict

# Core Pydantic models for the tenant-owned entities. Documents coming out of
# MongoDB are validated through these before business logic touches them.


class Channel(str, Enum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TEST = "test"


class MessageRole(str, Enum):
    CUSTOMER = "customer"
    GENERATED = "generated"


class OrderStatus(str, Enum):
    """Canonical order statuses, used both for storage and for updates."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderSource(str, Enum):
    CHAT = "chat"
    MANUAL = "manual"
    API = "api"
    TEST = "test"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


class ActivationType(str, Enum):
    TEMP = "temp"
    FULL = "full"


class OrderSignal(str, Enum):
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"


class Message(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: Optional[str] = None
    tenant_id: str
    channel: Channel = Channel.TEST
    content: str
    role: MessageRole
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class Product(BaseModel):
    id: str
    tenant_id: str
    name: str
    price: str
    description: str = ""
    category: str = ""
    image: str = ""
    in_stock: bool = True


class StoreProfile(BaseModel):
    tenant_id: Optional[str] = None
    name: str = ""
    address: str = ""
    description: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    logo: str = ""

    def has_context(self) -> bool:
        """Only name, address and description are given to the model."""
        return bool(self.name or self.address or self.description)


class OrderItem(BaseModel):
    product_id: str = "unknown"
    product_name: str
    quantity: int = Field(default=1, ge=1)
    price: str = "0"


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: Optional[str] = None
    tenant_id: str
    product_id: str = "unknown"
    product_name: str
    quantity: int = Field(default=1, ge=1)
    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: str = "0"
    status: OrderStatus = OrderStatus.PENDING
    notes: str = ""
    source: OrderSource = OrderSource.MANUAL
    payment_method: PaymentMethod = PaymentMethod.CASH
    created_at: Optional[datetime] = None


class Tenant(BaseModel):
    """A store owner account, including its message quota state."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str
    username: str
    email: str = ""
    name: str = ""
    message_count: int = 0
    free_messages_remaining: int = 50
    activation_code: Optional[str] = None
    activation_expiry: Optional[datetime] = None
    activation_type: Optional[ActivationType] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Tenant":
        data = {k: v for k, v in document.items() if k != "password"}
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls(**data)


class ActivationCode(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    code: str
    type: ActivationType
    duration_days: int
    used: bool = False
    used_by: Optional[str] = None
    used_at: Optional[datetime] = None
    description: str = ""
    created_at: Optional[datetime] = None


class ConnectedPage(BaseModel):
    id: str
    name: str = ""
    access_token: str
    instagram_account: Optional[Dict[str, Any]] = None


class PageConnection(BaseModel):
    tenant_id: str
    facebook_id: Optional[str] = None
    name: str = ""
    email: str = ""
    access_token: str
    expires_at: datetime
    connected_at: datetime
    accounts: List[ConnectedPage] = Field(default_factory=list)
