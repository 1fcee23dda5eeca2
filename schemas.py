"""
Request and response schemas for the HTTP and RPC adapters.

Responses are serialized with camelCase keys (authorId, createdAt, ...).
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, StrictInt, field_serializer, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---- Auth ----

class RegisterSchema(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, min_length=1)


class TokenSchema(BaseModel):
    email: str
    password: str


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


# ---- Posts (HTTP bodies) ----

class PostCreateSchema(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    published: Optional[StrictBool] = None


class PostPatchSchema(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)
    published: Optional[StrictBool] = None


class PostOut(CamelModel):
    id: str
    title: str
    content: str
    author_id: str
    published: bool
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def as_utc(self, value: datetime) -> datetime:
        # stored naive, always UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PageWindowOut(CamelModel):
    items: List[PostOut]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool


# ---- RPC procedure inputs ----

class RpcListInput(CamelModel):
    author_id: Optional[UUID] = None
    published_only: Optional[StrictBool] = None
    limit: Optional[StrictInt] = Field(None, gt=0, le=100)
    page: Optional[StrictInt] = Field(None, gt=0)


class RpcByIdInput(BaseModel):
    id: UUID


class RpcCreateInput(CamelModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    author_id: UUID
    published: Optional[StrictBool] = None


class RpcPatch(PostPatchSchema):
    @model_validator(mode="after")
    def has_fields(self):
        if not self.model_fields_set:
            raise ValueError("No fields to update")
        return self


class RpcUpdateInput(CamelModel):
    id: UUID
    patch: RpcPatch
    user_id: UUID


class RpcRemoveInput(CamelModel):
    id: UUID
    user_id: UUID
