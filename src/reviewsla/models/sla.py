"""Service-level bands, reminder schedule and compensation tiers.

All thresholds are measured in hours since the request was created and are
fixed: they define the service level, they are not tuning knobs.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class ServiceLevelBand(StrEnum):
    OPTIMAL = "optimal"
    STANDARD = "standard"
    DELAYED = "delayed"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _BAND_ORDER.index(self)

    @property
    def policy(self) -> BandPolicy:
        return SLA_BANDS[self.rank]


_BAND_ORDER = [
    ServiceLevelBand.OPTIMAL,
    ServiceLevelBand.STANDARD,
    ServiceLevelBand.DELAYED,
    ServiceLevelBand.CRITICAL,
]


class RecipientRole(StrEnum):
    REQUESTER = "requester"
    REVIEWER = "reviewer"
    ADMIN = "admin"


class CompensationKind(StrEnum):
    CURRENCY = "currency"
    PRIORITY_QUEUE = "priority_queue"
    PREMIUM_FEATURE = "premium_feature"


class BandPolicy(BaseModel):
    """A band with its upper bound, reward and notification template."""

    band: ServiceLevelBand
    max_hours: Optional[float]  # None = unbounded (critical)
    reward: int
    template: str


class ReminderRule(BaseModel):
    """A one-time nudge to the assigned reviewer."""

    threshold_hours: int
    template: str


class CompensationTier(BaseModel):
    """Compensation owed to the requester once a threshold is missed."""

    threshold_hours: int
    kind: CompensationKind
    amount: int
    unit: str
    automatic: bool = True


SLA_BANDS: list[BandPolicy] = [
    BandPolicy(band=ServiceLevelBand.OPTIMAL, max_hours=6, reward=50, template="sla_optimal"),
    BandPolicy(band=ServiceLevelBand.STANDARD, max_hours=24, reward=25, template="sla_standard"),
    BandPolicy(band=ServiceLevelBand.DELAYED, max_hours=48, reward=10, template="sla_delayed"),
    BandPolicy(band=ServiceLevelBand.CRITICAL, max_hours=None, reward=0, template="sla_critical"),
]

REMINDERS: list[ReminderRule] = [
    ReminderRule(threshold_hours=12, template="gentle_reminder_12h"),
    ReminderRule(threshold_hours=24, template="escalation_24h"),
    ReminderRule(threshold_hours=36, template="final_warning_36h"),
]

COMPENSATION_TIERS: list[CompensationTier] = [
    CompensationTier(threshold_hours=48, kind=CompensationKind.CURRENCY, amount=25, unit="sla_credits"),
    CompensationTier(threshold_hours=72, kind=CompensationKind.PRIORITY_QUEUE, amount=3, unit="reviews"),
    CompensationTier(
        threshold_hours=96, kind=CompensationKind.PREMIUM_FEATURE, amount=7, unit="days_pro",
        automatic=False,
    ),
]

# slaScore points removed from a reviewer whose request is redistributed.
REDISTRIBUTION_SLA_PENALTY = 10

# Responses at or under this many hours keep a reviewer's streak alive.
STREAK_MAX_HOURS = 24


def band_for_elapsed(elapsed_hours: float) -> ServiceLevelBand:
    """Map elapsed hours to exactly one band (upper bounds inclusive)."""
    for policy in SLA_BANDS:
        if policy.max_hours is None or elapsed_hours <= policy.max_hours:
            return policy.band
    return ServiceLevelBand.CRITICAL


def later_band(a: ServiceLevelBand, b: ServiceLevelBand) -> ServiceLevelBand:
    return a if a.rank >= b.rank else b


def crossed_tiers(elapsed_hours: float) -> list[CompensationTier]:
    return [t for t in COMPENSATION_TIERS if elapsed_hours >= t.threshold_hours]


def tier_for(threshold_hours: int) -> CompensationTier:
    for tier in COMPENSATION_TIERS:
        if tier.threshold_hours == threshold_hours:
            return tier
    raise KeyError(f"No compensation tier at {threshold_hours}h")
