from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field


class LineItem(BaseModel):
    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    amount: Decimal


class Invoice(BaseModel):
    vendor: str
    invoice_date: date
    line_items: list[LineItem] = Field(min_length=1)
    total: Decimal
    currency: str | None = None
    source_job_id: str | None = None

    @property
    def line_item_sum(self) -> Decimal:
        return sum((item.amount for item in self.line_items), Decimal("0"))
