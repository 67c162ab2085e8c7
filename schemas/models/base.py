"""
Shared plumbing for the document models.

``PyObjectId`` lets pydantic validate BSON ids coming from pymongo and from
hex strings (JWT ``sub`` claims, path parameters), and serialise them back
as hex. ``MongoBaseModel`` maps ``_id`` onto ``id`` and converts between
models and the raw dicts pymongo reads and writes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler, field_validator
from pydantic_core import core_schema

from shared.datetime_utils import ensure_utc

M = TypeVar("M", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, (str, bytes)) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class MongoBaseModel(BaseModel):
    """
    Base for the ``accounts``, ``customers`` and ``technicians`` documents.

    Every datetime field is normalised to aware UTC on the way in, so values
    read back from a naive client compare cleanly against ``utcnow()``.
    Enums are kept as their string values, which is also how they are stored.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    @field_validator("*", mode="after")
    @classmethod
    def _utc_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v

    def to_mongo(self, *, exclude: Optional[set[str]] = None) -> dict:
        """Dump for insert; an unset ``_id`` is left out so MongoDB assigns one."""
        data = self.model_dump(by_alias=True, exclude=exclude)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: type[M], data: Optional[dict]) -> Optional[M]:
        """Validate a raw document; ``None`` (no match) passes through."""
        return None if data is None else cls.model_validate(data)
