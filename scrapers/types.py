from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Status = Literal["updated", "unchanged"]

STATUS_UPDATED: Status = "updated"
STATUS_UNCHANGED: Status = "unchanged"


@dataclass(frozen=True)
class Quote:
    price: float
    date: str
    currency: str = "EUR"
    daily_change: float | None = None
    monthly_change: float | None = None
    yearly_change: float | None = None
    observed_at: str | None = None
    status: Status | None = None

    def same_observation(self, other: Quote) -> bool:
        """True when both records carry the same quoted date and price."""
        return self.date == other.date and self.price == other.price
