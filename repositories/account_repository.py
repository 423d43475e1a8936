"""
Account repository - users and sellers in MongoDB.

One class serves both collections; the document model decides the shape.
Driver failures are wrapped in DatabaseError so the error handler can
answer with a generic 500 while the real cause is logged here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, Optional, Type, TypeVar

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import DatabaseError, ValidationError
from schemas.models.account import AccountDoc, SellerDoc, UserDoc
from shared.logging import get_logger

log = get_logger(__name__)

USERS_COLLECTION = "users"
SELLERS_COLLECTION = "sellers"

DocT = TypeVar("DocT", bound=AccountDoc)


class AccountRepository(Generic[DocT]):
    def __init__(
        self, collection: AsyncCollection, model: Type[DocT], kind: str
    ) -> None:
        self._col = collection
        self._model = model
        self.kind = kind

    async def ensure_indexes(self) -> None:
        try:
            await self._col.create_index([("email", ASCENDING)], unique=True)
        except PyMongoError as e:
            log.error("account_index_creation_failed", collection=self.kind, error=str(e))
            raise DatabaseError(f"Failed to create indexes on {self.kind}") from e

    async def _find_one(self, query: dict[str, Any]) -> Optional[DocT]:
        try:
            doc = await self._col.find_one(query)
        except PyMongoError as e:
            log.error(
                "account_lookup_failed",
                collection=self.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(f"Failed to query {self.kind}") from e
        return self._model.from_mongo(doc)

    async def find_by_email(self, email: str) -> Optional[DocT]:
        return await self._find_one({"email": email})

    async def find_by_id(self, account_id: str) -> Optional[DocT]:
        if not ObjectId.is_valid(account_id):
            return None
        return await self._find_one({"_id": ObjectId(account_id)})

    async def exists(self, email: str) -> bool:
        try:
            doc = await self._col.find_one({"email": email}, {"_id": 1})
        except PyMongoError as e:
            log.error("account_lookup_failed", collection=self.kind, error=str(e))
            raise DatabaseError(f"Failed to query {self.kind}") from e
        return doc is not None

    async def create(self, account: DocT) -> DocT:
        now = datetime.now(timezone.utc)
        account.created_at = now
        account.updated_at = now
        try:
            result = await self._col.insert_one(account.to_mongo())
        except DuplicateKeyError as e:
            # a concurrent verify for the same email won the insert
            raise ValidationError(
                f"{self.kind.capitalize()} already exists with this email"
            ) from e
        except PyMongoError as e:
            log.error(
                "account_insert_failed",
                collection=self.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(f"Failed to insert into {self.kind}") from e
        account.id = result.inserted_id
        log.info("account_created", collection=self.kind, account_id=str(account.id))
        return account

    async def update_password(self, email: str, password_hash: str) -> bool:
        try:
            result = await self._col.update_one(
                {"email": email},
                {
                    "$set": {
                        "password_hash": password_hash,
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except PyMongoError as e:
            log.error("account_update_failed", collection=self.kind, error=str(e))
            raise DatabaseError(f"Failed to update {self.kind}") from e
        return result.matched_count > 0


class UserRepository(AccountRepository[UserDoc]):
    def __init__(self, collection: AsyncCollection) -> None:
        super().__init__(collection, UserDoc, "user")


class SellerRepository(AccountRepository[SellerDoc]):
    def __init__(self, collection: AsyncCollection) -> None:
        super().__init__(collection, SellerDoc, "seller")
