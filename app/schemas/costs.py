from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class DateRange(BaseModel):
    """Half-open `[start, end)` range of dates, the shape Cost Explorer expects."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class CostPeriod(BaseModel):
    """Aggregated spend for one month-aligned period."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    amount: Decimal
    unit: str = "USD"
    estimated: bool = False
    service: Optional[str] = None
