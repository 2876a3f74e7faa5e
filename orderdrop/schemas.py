from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.config import ConfigDict
from typing import Optional

from . import errors

MAX_ORDER_NUMBER_LENGTH = 100


class OrderNumberIn(BaseModel):
    order_number: str = Field(..., alias="orderNumber")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("order_number")
    def strip_and_check(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("Order number is required")
        if len(v) > MAX_ORDER_NUMBER_LENGTH:
            raise ValueError("Order number is too long")
        # Order numbers are single URL path segments in the upload link
        if "/" in v:
            raise ValueError("Order number must not contain a slash")
        return v


class OrderRead(BaseModel):
    id: int
    order_number: str = Field(..., serialization_alias="orderNumber")
    video_url: Optional[str] = Field(default=None, serialization_alias="videoUrl")
    image_url: Optional[str] = Field(default=None, serialization_alias="imageUrl")
    song_request: Optional[str] = Field(default=None, serialization_alias="songRequest")
    has_uploaded: bool = Field(default=False, serialization_alias="hasUploaded")

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    is_seller: bool = Field(default=False, alias="isSeller")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("username")
    def strip_username(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v


class UserRead(BaseModel):
    id: int
    username: str
    is_seller: bool = Field(default=False, serialization_alias="isSeller")

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: str
    password: str


def parse_order_number(value) -> str:
    """Validate a raw order number from a body, form or path segment."""
    try:
        return OrderNumberIn(orderNumber=value).order_number
    except PydanticValidationError as e:
        raise errors.ValidationError("Invalid order number") from e
