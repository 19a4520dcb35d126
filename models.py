from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scrapers.types import Quote


class QuoteRecord(BaseModel):
    """Wire and on-disk shape of a ``Quote`` (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    price: float = Field(gt=0)
    date: str
    currency: str = "EUR"
    daily_change: float | None = Field(default=None, alias="dailyChange")
    monthly_change: float | None = Field(default=None, alias="monthlyChange")
    yearly_change: float | None = Field(default=None, alias="yearlyChange")
    observed_at: str | None = Field(
        default=None,
        alias="observedAt",
        validation_alias=AliasChoices("observedAt", "lastUpdated", "observed_at"),
    )
    status: Literal["updated", "unchanged"] | None = None

    @classmethod
    def from_quote(cls, quote: Quote) -> QuoteRecord:
        return cls(
            price=quote.price,
            date=quote.date,
            currency=quote.currency,
            daily_change=quote.daily_change,
            monthly_change=quote.monthly_change,
            yearly_change=quote.yearly_change,
            observed_at=quote.observed_at,
            status=quote.status,
        )

    def to_quote(self) -> Quote:
        return Quote(
            price=self.price,
            date=self.date,
            currency=self.currency,
            daily_change=self.daily_change,
            monthly_change=self.monthly_change,
            yearly_change=self.yearly_change,
            observed_at=self.observed_at,
            status=self.status,
        )


def dump_quote(quote: Quote) -> dict:
    return QuoteRecord.from_quote(quote).model_dump(mode="json", by_alias=True)


class UpdateResponse(BaseModel):
    message: str
    data: QuoteRecord


class LatencyStats(BaseModel):
    count: int = 0
    avg_ms: float | None = None
    max_ms: float | None = None
    min_ms: float | None = None
    total_ms: float | None = None
