"""
Shared Schemas - Pydantic Models for Cached Domain Records

Records flowing through the client cache. The API owns the full shape of
these objects, so unknown fields are preserved untouched; the models only
pin down the fields the cache relies on.
"""
from typing import Any, ClassVar, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


RecordId = Union[str, int]


class CachedRecord(BaseModel):
    """Base schema for API records stored in the cache."""

    model_config = ConfigDict(extra="allow")

    # Bumped whenever the fields below change incompatibly
    SCHEMA_VERSION: ClassVar[int] = 1


class User(CachedRecord):
    """The signed-in user as returned by the profile endpoint."""
    id: RecordId = Field(..., description="User identifier")


class Club(CachedRecord):
    """A club entry in the user's club list."""
    id: RecordId = Field(..., description="Club identifier, unique within a list")


class ChatMessage(CachedRecord):
    """A chat message in a club room."""
    id: Optional[RecordId] = Field(None, description="Message identifier")


def to_record_dict(record: Union[Mapping[str, Any], BaseModel]) -> Dict[str, Any]:
    """Plain JSON-ready dict for a record given as a mapping or a model."""
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", by_alias=True, exclude_none=True)
    return dict(record)


def same_id(left: Optional[RecordId], right: Optional[RecordId]) -> bool:
    """Compare record ids by string form; API ids may be ints, path ids are strings."""
    if left is None or right is None:
        return False
    return str(left) == str(right)
