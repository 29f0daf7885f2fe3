import re
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = re.compile(r"^[\+]?[0-9\s\-\(\)]{8,15}$")

DataT = TypeVar("DataT")


def _as_utc(value: datetime) -> datetime:
    # Columns hold naive UTC; the wire always carries an explicit offset.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        str_strip_whitespace = True


def _check_phone(value):
    if value is not None and not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number")
    return value


def _blank_email_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _lower_email(value):
    return value.lower() if value else value


class OrderLineIn(CamelModel):
    menu_item_id: int = Field(ge=1)
    quantity: int = Field(ge=1, le=20)


class OrderCreate(CamelModel):
    customer_name: str = Field(min_length=1, max_length=100)
    phone: str
    email: Optional[EmailStr] = None
    items: List[OrderLineIn] = Field(min_length=1)
    special_instructions: Optional[str] = Field(default=None, max_length=500)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _check_phone(value)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        return _blank_email_to_none(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return _lower_email(value)


class OrderUpdate(CamelModel):
    # Contact-detail corrections only; lines, totals and status stay frozen.
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    special_instructions: Optional[str] = Field(default=None, max_length=500)

    class Config:
        extra = "forbid"

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _check_phone(value)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        return _blank_email_to_none(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return _lower_email(value)


class OrderStatusUpdate(CamelModel):
    # Both fields are checked by the status manager so direct callers and
    # HTTP callers get the same InvalidStatus / InvalidDate codes.
    status: Any
    estimated_ready_time: Optional[Any] = None


class OrderLineOut(CamelModel):
    menu_item_id: int
    name: str
    quantity: int
    unit_price: float
    line_total: float


class OrderOut(CamelModel):
    id: int
    order_number: str
    customer_name: str
    phone: str
    email: Optional[str] = None
    items: List[OrderLineOut]
    total_items: int
    total_amount: float
    status: str
    estimated_ready_time: Optional[UTCDateTime] = None
    special_instructions: Optional[str] = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class OrderReceipt(CamelModel):
    order_number: str
    total_amount: float
    estimated_ready_time: Optional[UTCDateTime] = None
    status: str


class Pagination(CamelModel):
    current: int
    pages: int
    total: int


class Envelope(CamelModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None


class ListEnvelope(CamelModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: List[DataT]
    pagination: Pagination
