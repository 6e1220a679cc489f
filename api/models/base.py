# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document mapping.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


EntityT = TypeVar("EntityT", bound="BaseEntity")


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ValueModel(BaseModel):
    """Embedded value object sharing the camelCase document convention."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True
    )


class BaseEntity(BaseModel):
    """Base entity with common fields for all stored records."""

    model_config = ConfigDict(
        # Allow population by field name or camelCase alias
        populate_by_name=True,
        alias_generator=to_camel,
        # Use enum values instead of enum objects
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")
    created_by: Optional[str] = Field(None, description="User ID who created this record")
    updated_by: Optional[str] = Field(None, description="User ID who last updated this record")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def update_timestamp(self, updated_by: str, now: Optional[datetime] = None) -> None:
        """Update the timestamp and updated_by fields."""
        self.updated_at = now or utc_now()
        self.updated_by = updated_by

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document (camelCase keys, `_id`, ISO dates)."""
        data = self.model_dump(by_alias=True)
        data["_id"] = ObjectId(data.pop("id"))
        return _encode_dates(data)

    @classmethod
    def from_document(cls: Type[EntityT], document: Dict[str, Any]) -> EntityT:
        """Build an entity from a MongoDB document."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


def _encode_dates(value: Any) -> Any:
    # BSON stores datetimes only; calendar dates are kept as ISO strings
    if isinstance(value, dict):
        return {key: _encode_dates(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_encode_dates(item) for item in value]
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return value
