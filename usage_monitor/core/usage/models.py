from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, StrictStr


class UsageBucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    utilization: float
    resets_at: StrictStr | None = None


class UsageResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    five_hour: UsageBucket | None = None
    seven_day: UsageBucket | None = None
    seven_day_oauth_apps: UsageBucket | None = None
    seven_day_opus: UsageBucket | None = None
    seven_day_sonnet: UsageBucket | None = None


class TokenSource(str, Enum):
    PRIMARY = "primary"
    MANUAL = "manual"


class UsageThreshold(float, Enum):
    WARNING = 0.75
    CRITICAL = 0.90

    @classmethod
    def ascending(cls) -> list[UsageThreshold]:
        return sorted(cls, key=lambda threshold: threshold.value)


@dataclass(frozen=True, slots=True)
class UsageLimit:
    id: str
    title: str
    utilization: float
    resets_at: datetime | None = None
