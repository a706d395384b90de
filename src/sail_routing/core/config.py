from __future__ import annotations

from dataclasses import dataclass

OBJECTIVES = ("time", "distance", "risk")


@dataclass(frozen=True)
class RiskModel:
    """Exposure risk accumulated while sailing in strong wind.

    Risk accrues per hour at a rate of
    ``((wind_speed - safe_wind_speed) / reference_wind_speed) ** exponent``
    once the true wind over water exceeds the safe wind speed, and is zero
    below it.
    """

    safe_wind_speed_ms: float = 10.289  # 20 kn
    reference_wind_speed_ms: float = 2.572  # 5 kn
    exponent: float = 2.0


RISK_DEFAULT = RiskModel()
