# /storechat/services/db_service.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument

from storechat.config.settings import settings
from storechat.models.domain import (
    ActivationCode, ActivationType, Message, MessageRole, Order, OrderStatus, PageConnection, Product,
    StoreProfile,
)
from storechat.utils.metrics import database_operations_counter

logger = logging.getLogger(__name__)

# Constants
HISTORY_PAIRS_DEFAULT = 5
RECENT_ORDERS_DAYS = 7
TOP_PRODUCTS_LIMIT = 5
ACTIVATION_DURATION_DAYS = {ActivationType.TEMP.value: 7, ActivationType.FULL.value: 30}

STORE_PROFILE_DEFAULTS = StoreProfile().model_dump(exclude={"tenant_id"})


class RecordNotFoundError(LookupError):
    """The tenant has no record with the requested id."""


class DatabaseService:
    """
    MongoDB gateway for every collection the service owns. All tenant data is
    read and written through a `tenant_id` filter; nothing here crosses tenants
    except the admin aggregate helpers.
    """

    def __init__(self, mongo_uri: str, db_name: str):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tls=settings.mongo_tls,
                tz_aware=True,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client[db_name]
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    # ==================== Helper Methods ====================

    def _serialize_id(self, document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Expose Mongo's `_id` as a string `id` field."""
        if document and "_id" in document:
            document["id"] = str(document.pop("_id"))
        return document

    def _serialize_ids(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self._serialize_id(doc) for doc in documents]

    def _now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            ("users", [("username", 1)], {"unique": True}),
            ("products", [("tenant_id", 1), ("created_at", 1)], {}),
            ("messages", [("tenant_id", 1), ("created_at", -1), ("_id", -1)], {}),
            ("store_profiles", [("tenant_id", 1)], {"unique": True}),
            ("orders", [("tenant_id", 1), ("created_at", -1)], {}),
            ("orders", [("created_at", -1)], {}),
            ("activation_codes", [("code", 1)], {"unique": True}),
            ("page_connections", [("tenant_id", 1)], {"unique": True}),
            ("page_connections", [("accounts.id", 1)], {}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    # ==================== Tenant Operations ====================

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._serialize_id(await self.db.users.find_one({"_id": user_id}))

    async def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self._serialize_id(await self.db.users.find_one({"username": username}))

    async def create_user(self, username: str, password_hash: str, email: str = "", name: str = "") -> Dict[str, Any]:
        now = self._now_utc()
        document = {
            "_id": self._new_id(),
            "username": username,
            "password": password_hash,
            "email": email,
            "name": name,
            "message_count": 0,
            "free_messages_remaining": settings.default_free_messages,
            "activation_code": None,
            "activation_expiry": None,
            "activation_type": None,
            "created_at": now,
            "updated_at": now,
        }
        await self.db.users.insert_one(document)
        database_operations_counter.labels(operation="create_user", status="success").inc()
        return self._serialize_id(document)

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        updated = await self.db.users.find_one_and_update(
            {"_id": user_id},
            {"$set": {**updates, "updated_at": self._now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._serialize_id(updated)

    async def list_users(self) -> List[Dict[str, Any]]:
        cursor = self.db.users.find({}, {"password": 0}).sort("created_at", -1)
        return self._serialize_ids(await cursor.to_list(length=None))

    async def consume_free_message(self, user_id: str) -> bool:
        """Atomically spends one free message; False when none were left."""
        result = await self.db.users.find_one_and_update(
            {"_id": user_id, "free_messages_remaining": {"$gt": 0}},
            {"$inc": {"free_messages_remaining": -1, "message_count": 1}},
        )
        return result is not None

    async def record_activated_message(self, user_id: str) -> None:
        await self.db.users.update_one({"_id": user_id}, {"$inc": {"message_count": 1}})

    # ==================== Product Operations ====================

    async def get_products(self, tenant_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.products.find({"tenant_id": tenant_id}).sort("created_at", 1)
        return self._serialize_ids(await cursor.to_list(length=None))

    async def add_product(self, tenant_id: str, product_data: Dict[str, Any]) -> Dict[str, Any]:
        product = Product(id=self._new_id(), tenant_id=tenant_id, **product_data)
        now = self._now_utc()
        document = {
            "_id": product.id,
            **product.model_dump(exclude={"id"}),
            "created_at": now,
            "updated_at": now,
        }
        await self.db.products.insert_one(document)
        database_operations_counter.labels(operation="add_product", status="success").inc()
        return self._serialize_id(document)

    async def update_product(self, tenant_id: str, product_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updated = await self.db.products.find_one_and_update(
            {"_id": product_id, "tenant_id": tenant_id},
            {"$set": {**updates, "updated_at": self._now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise RecordNotFoundError(f"Product {product_id} not found")
        return self._serialize_id(updated)

    async def delete_product(self, tenant_id: str, product_id: str) -> None:
        result = await self.db.products.delete_one({"_id": product_id, "tenant_id": tenant_id})
        if result.deleted_count == 0:
            raise RecordNotFoundError(f"Product {product_id} not found")

    # ==================== Message Operations ====================

    async def add_message(
        self,
        tenant_id: str,
        channel: str,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        message = Message(
            tenant_id=tenant_id,
            channel=channel,
            role=role,
            content=content,
            metadata=metadata or {},
            created_at=self._now_utc(),
        )
        document = message.model_dump(exclude={"id"})
        result = await self.db.messages.insert_one(document)
        document["_id"] = result.inserted_id
        database_operations_counter.labels(operation="add_message", status="success").inc()
        return self._serialize_id(document)

    async def get_messages(self, tenant_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.messages.find({"tenant_id": tenant_id}).sort([("created_at", 1), ("_id", 1)])
        return self._serialize_ids(await cursor.to_list(length=None))

    async def get_conversation_history(self, tenant_id: str, limit: int = HISTORY_PAIRS_DEFAULT) -> List[Dict[str, Any]]:
        """
        Latest `limit` exchanges (up to limit * 2 messages) for a tenant,
        returned oldest first.
        """
        max_messages = limit * 2
        cursor = (
            self.db.messages.find({"tenant_id": tenant_id})
            .sort([("created_at", -1), ("_id", -1)])
            .limit(max_messages)
        )
        messages = await cursor.to_list(length=max_messages)
        messages.reverse()
        return self._serialize_ids(messages)

    async def get_message_stats(self, tenant_id: str) -> Dict[str, Any]:
        pipeline = [
            {"$match": {"tenant_id": tenant_id}},
            {"$facet": {
                "by_role": [{"$group": {"_id": "$role", "count": {"$sum": 1}}}],
                "by_channel": [{"$group": {"_id": "$channel", "count": {"$sum": 1}}}],
                "by_date": [
                    {"$group": {
                        "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
                        "count": {"$sum": 1},
                    }},
                    {"$sort": {"_id": 1}},
                ],
            }},
        ]
        results = await self.db.messages.aggregate(pipeline).to_list(length=1)
        facets = results[0] if results else {"by_role": [], "by_channel": [], "by_date": []}

        by_role = {row["_id"]: row["count"] for row in facets["by_role"]}
        return {
            "total_messages": sum(by_role.values()),
            "customer_messages": by_role.get(MessageRole.CUSTOMER.value, 0),
            "generated_messages": by_role.get(MessageRole.GENERATED.value, 0),
            "channel_stats": {row["_id"]: row["count"] for row in facets["by_channel"]},
            "date_stats": {row["_id"]: row["count"] for row in facets["by_date"] if row["_id"]},
        }

    # ==================== Store Profile Operations ====================

    async def get_store_info(self, tenant_id: str) -> Dict[str, Any]:
        """Returns the tenant's store profile, creating the empty default on first read."""
        now = self._now_utc()
        profile = await self.db.store_profiles.find_one_and_update(
            {"tenant_id": tenant_id},
            {"$setOnInsert": {"tenant_id": tenant_id, **STORE_PROFILE_DEFAULTS, "created_at": now, "updated_at": now}},
            upsert=True,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return profile

    async def update_store_info(self, tenant_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        now = self._now_utc()
        defaults = {k: v for k, v in STORE_PROFILE_DEFAULTS.items() if k not in updates}
        profile = await self.db.store_profiles.find_one_and_update(
            {"tenant_id": tenant_id},
            {
                "$set": {**updates, "updated_at": now},
                "$setOnInsert": {**defaults, "created_at": now},
            },
            upsert=True,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return profile

    # ==================== Order Operations ====================

    async def get_orders(self, tenant_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.orders.find({"tenant_id": tenant_id}).sort("created_at", -1)
        return self._serialize_ids(await cursor.to_list(length=None))

    async def add_order(self, tenant_id: str, order_fields: Dict[str, Any]) -> Dict[str, Any]:
        order = Order(tenant_id=tenant_id, **order_fields)
        now = self._now_utc()
        document = {
            "_id": self._new_id(),
            **order.model_dump(exclude={"id", "created_at"}),
            "created_at": now,
            "updated_at": now,
        }
        await self.db.orders.insert_one(document)
        database_operations_counter.labels(operation="add_order", status="success").inc()
        return self._serialize_id(document)

    async def update_order(self, tenant_id: str, order_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updated = await self.db.orders.find_one_and_update(
            {"_id": order_id, "tenant_id": tenant_id},
            {"$set": {**updates, "updated_at": self._now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise RecordNotFoundError(f"Order {order_id} not found")
        return self._serialize_id(updated)

    async def update_order_status(self, tenant_id: str, order_id: str, status: str) -> Dict[str, Any]:
        return await self.update_order(tenant_id, order_id, {"status": OrderStatus(status).value})

    async def delete_order(self, tenant_id: str, order_id: str) -> None:
        result = await self.db.orders.delete_one({"_id": order_id, "tenant_id": tenant_id})
        if result.deleted_count == 0:
            raise RecordNotFoundError(f"Order {order_id} not found")

    # ==================== Activation Codes ====================

    async def list_activation_codes(self) -> List[Dict[str, Any]]:
        cursor = self.db.activation_codes.find({}, {"_id": 0}).sort("created_at", -1)
        return await cursor.to_list(length=None)

    async def create_activation_code(self, code_type: str, description: str) -> Dict[str, Any]:
        code = ActivationCode(
            code=self._new_id()[:8].upper(),
            type=ActivationType(code_type),
            duration_days=ACTIVATION_DURATION_DAYS[code_type],
            description=description,
            created_at=self._now_utc(),
        )
        document = code.model_dump()
        await self.db.activation_codes.insert_one(document)
        document.pop("_id", None)
        return document

    async def claim_activation_code(self, code: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Marks an unused code as used by `user_id`; None when the code is unknown or already used."""
        return await self.db.activation_codes.find_one_and_update(
            {"code": code, "used": False},
            {"$set": {"used": True, "used_by": user_id, "used_at": self._now_utc()}},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )

    async def delete_activation_code(self, code: str) -> bool:
        result = await self.db.activation_codes.delete_one({"code": code})
        return result.deleted_count > 0

    # ==================== Page Connections ====================

    async def save_page_connection(self, tenant_id: str, connection: Dict[str, Any]) -> None:
        await self.db.page_connections.replace_one(
            {"tenant_id": tenant_id},
            PageConnection(**{**connection, "tenant_id": tenant_id}).model_dump(),
            upsert=True,
        )

    async def get_page_connection(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.page_connections.find_one({"tenant_id": tenant_id}, {"_id": 0})

    async def delete_page_connection(self, tenant_id: str) -> bool:
        result = await self.db.page_connections.delete_one({"tenant_id": tenant_id})
        return result.deleted_count > 0

    async def find_page_account(self, page_id: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        """Resolves a Facebook page id to (tenant_id, connected page account)."""
        connection = await self.db.page_connections.find_one(
            {"accounts.id": page_id},
            {"tenant_id": 1, "accounts.$": 1},
        )
        if not connection or not connection.get("accounts"):
            return None
        return connection["tenant_id"], connection["accounts"][0]

    # ==================== Admin Statistics ====================

    async def get_system_stats(self) -> Dict[str, Any]:
        now = self._now_utc()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        window_start = today - timedelta(days=RECENT_ORDERS_DAYS - 1)

        status_counts = {
            status.value: await self.db.orders.count_documents({"status": status.value})
            for status in OrderStatus
        }

        per_day_rows = await self.db.orders.aggregate([
            {"$match": {"created_at": {"$gte": window_start}}},
            {"$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
                "count": {"$sum": 1},
            }},
        ]).to_list(length=None)
        per_day = {row["_id"]: row["count"] for row in per_day_rows}
        orders_per_day = {}
        for offset in range(RECENT_ORDERS_DAYS - 1, -1, -1):
            day = (today - timedelta(days=offset)).strftime("%Y-%m-%d")
            orders_per_day[day] = per_day.get(day, 0)

        top_products = await self.db.orders.aggregate([
            {"$group": {"_id": "$product_name", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
            {"$limit": TOP_PRODUCTS_LIMIT},
        ]).to_list(length=TOP_PRODUCTS_LIMIT)

        return {
            "total_orders": await self.db.orders.count_documents({}),
            "total_products": await self.db.products.count_documents({}),
            "total_messages": await self.db.messages.count_documents({}),
            "total_users": await self.db.users.count_documents({}),
            "orders_by_status": status_counts,
            "recent_orders": sum(orders_per_day.values()),
            "orders_per_day": orders_per_day,
            "top_products": [{"name": row["_id"], "count": row["count"]} for row in top_products],
        }


# Globally accessible instance
db_service = DatabaseService(settings.mongo_uri, settings.mongo_db_name)
