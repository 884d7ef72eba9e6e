"""PricingEngine — reprices the asset from a round's net order flow.

Formula:
    imbalance = net_flow - baseline
    delta     = imbalance * sensitivity + uniform(-noise_band, +noise_band)
    price'    = clamp(price * (1 + delta), bounds)

Positive imbalance (net buying pressure) moves the price up, negative moves it
down, zero leaves only the noise term. The engine holds configuration and a
random source only; every call is independent of previous calls.
"""

import logging
import math
import random
from collections.abc import Sequence

from src.tm_common.errors import PricingFault
from src.tm_pricing.domain.models import PriceBounds

logger = logging.getLogger(__name__)


class PricingEngine:
    def __init__(
        self,
        sensitivity: float = 0.05,
        noise_band: float = 0.01,
        rng: random.Random | None = None,
    ) -> None:
        if sensitivity < 0:
            raise ValueError(f"sensitivity must be >= 0, got {sensitivity}")
        if not (0 <= noise_band < 1):
            raise ValueError(f"noise_band must be in [0, 1), got {noise_band}")
        self.sensitivity = sensitivity
        self.noise_band = noise_band
        self._rng = rng or random.Random()

    def compute_price(
        self,
        net_flow: float,
        baseline: float,
        current_price: float,
        bounds: PriceBounds,
    ) -> float:
        """Return the clamped next price. Raises PricingFault on non-finite input."""
        if not (math.isfinite(net_flow) and math.isfinite(baseline)):
            raise PricingFault(f"non-finite flow: net_flow={net_flow}, baseline={baseline}")
        if not math.isfinite(current_price) or current_price <= 0:
            raise PricingFault(f"current price must be finite and > 0, got {current_price}")

        imbalance = net_flow - baseline
        # finite flows can still overflow the difference; inf * 0 would be NaN
        raw_delta = imbalance * self.sensitivity if self.sensitivity else 0.0
        noise = self._rng.uniform(-self.noise_band, self.noise_band)

        candidate = current_price * (1 + raw_delta + noise)
        if math.isnan(candidate):
            raise PricingFault(f"price computation produced NaN (price={current_price})")
        new_price = bounds.clamp(candidate)

        logger.debug(
            "Price: flow=%.2f baseline=%.2f delta=%.4f noise=%.4f %.6f -> %.6f",
            net_flow, baseline, raw_delta, noise, current_price, new_price,
        )
        return new_price

    @staticmethod
    def rolling_average(prices: Sequence[float]) -> float:
        if not prices:
            return 0.0
        return sum(prices) / len(prices)
