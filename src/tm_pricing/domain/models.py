"""Domain models for tm_pricing — pure dataclasses, no business logic."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceBounds:
    """Inclusive clamp range for the asset price."""

    min_price: float
    max_price: float

    def __post_init__(self) -> None:
        if not (0 < self.min_price <= self.max_price):
            raise ValueError(
                f"Price bounds must satisfy 0 < min <= max, got [{self.min_price}, {self.max_price}]"
            )

    def clamp(self, price: float) -> float:
        return max(self.min_price, min(self.max_price, price))

    def contains(self, price: float) -> bool:
        return self.min_price <= price <= self.max_price
