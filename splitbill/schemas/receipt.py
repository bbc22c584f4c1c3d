"""Receipt scan schemas"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from splitbill.utils.decimal_utils import sum_decimals, to_decimal


class ScannedItem(BaseModel):
    """A line item read off a receipt; ``price`` is the unit price"""

    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(default=1, gt=0)

    @field_validator("price", mode="before")
    @classmethod
    def convert_price(cls, v):
        """Convert price to Decimal"""
        return to_decimal(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, v):
        """Missing quantity means a single unit"""
        return 1 if v is None else v


class ScannedReceipt(BaseModel):
    """Structured receipt data returned by the scanner"""

    items: List[ScannedItem]
    subtotal: Optional[Decimal] = None
    tax: Decimal = Decimal("0")
    total: Optional[Decimal] = None

    @field_validator("tax", mode="before")
    @classmethod
    def default_tax(cls, v):
        """Missing tax means no tax"""
        return Decimal("0") if v is None else to_decimal(v)

    @model_validator(mode="after")
    def fill_totals(self):
        """Derive subtotal and total when the receipt did not show them"""
        if self.subtotal is None:
            self.subtotal = sum_decimals([i.price * i.quantity for i in self.items])
        if self.total is None:
            self.total = self.subtotal + self.tax
        return self
