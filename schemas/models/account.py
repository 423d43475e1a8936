"""
Account document models.

UserDoc   - `users` collection (buyers)
SellerDoc - `sellers` collection

Both are keyed by a unique, normalised email. password_hash is an argon2
hash; the plaintext password is never stored. The MongoDB ``_id`` is exposed
as ``id`` and left out on insert until MongoDB has assigned one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator


def parse_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValueError(f"Invalid ObjectId: {value!r}")


DocumentId = Annotated[
    ObjectId, PlainValidator(parse_object_id), PlainSerializer(str, when_used="json")
]


class AccountDoc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[DocumentId] = Field(default=None, alias="_id")
    name: str
    email: str
    password_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_mongo(cls, data: Optional[dict]) -> Optional["AccountDoc"]:
        if data is None:
            return None
        return cls.model_validate(data)

    def to_mongo(self) -> dict:
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    def summary(self) -> dict:
        """Public projection returned by login and profile endpoints."""
        return {"id": str(self.id), "name": self.name, "email": self.email}


class UserDoc(AccountDoc):
    """Document model for the `users` collection."""


class SellerDoc(AccountDoc):
    """Document model for the `sellers` collection."""

    phone_number: str
    country: str

    def summary(self) -> dict:
        data = super().summary()
        data["phone_number"] = self.phone_number
        data["country"] = self.country
        return data
