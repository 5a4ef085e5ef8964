from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from tix.utils.dates import as_utc

from .base import CamelModel, reject_null_fields


class TicketTypeBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(..., ge=1)
    sale_start_date: Optional[datetime] = None
    sale_end_date: Optional[datetime] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Ticket name is required")
        return v.strip()

    @field_validator("sale_start_date", "sale_end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def check_sale_window(self) -> "TicketTypeBase":
        if (
            self.sale_start_date
            and self.sale_end_date
            and self.sale_start_date >= self.sale_end_date
        ):
            raise ValueError("Sale start must be before sale end")
        return self


class TicketTypeCreate(TicketTypeBase):
    pass


class TicketTypeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(None, ge=1)
    sale_start_date: Optional[datetime] = None
    sale_end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("sale_start_date", "sale_end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def required_columns_not_null(self) -> "TicketTypeUpdate":
        reject_null_fields(self, ("name", "price", "quantity", "is_active"))
        return self


class TicketType(TicketTypeBase):
    id: str
    event_id: str
    sold: int
    reserved: int
    available: int
    created_at: Optional[datetime] = None


class TicketPrice(CamelModel):
    name: str
    price: Decimal
