"""Sprint velocity, S-curve daily targets and schedule overrun projection."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

import numpy as np

# Empirically tuned daily shares for short sprints (fraction of the total per
# working day). Any other length uses the generated smoothstep profile.
S_CURVE_PROFILES: dict[int, tuple[float, ...]] = {
    10: (0.05, 0.07, 0.10, 0.12, 0.13, 0.13, 0.12, 0.10, 0.07, 0.05),
    9: (0.05, 0.07, 0.11, 0.13, 0.14, 0.14, 0.13, 0.11, 0.07),
    8: (0.06, 0.08, 0.12, 0.14, 0.14, 0.14, 0.12, 0.08),
    7: (0.07, 0.10, 0.13, 0.15, 0.15, 0.13, 0.10),
    6: (0.08, 0.12, 0.15, 0.15, 0.12, 0.08),
    5: (0.10, 0.15, 0.20, 0.15, 0.10),
}


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_whole(value: float) -> int:
    """Round to the nearest integer with halves going up (-2.5 -> -2, 2.5 -> 3)."""
    return math.floor(value + 0.5)


# ------------------ Calendar ------------------
def is_working_day(day: date) -> bool:
    return day.weekday() < 5


def sprint_dates(start: date, length: int = 14) -> list[date]:
    return [start + timedelta(days=i) for i in range(length)]


def working_days_between(start: date, end: date) -> int:
    """Count Monday-Friday days from ``start`` to ``end`` inclusive (0 if end < start)."""
    if end < start:
        return 0
    total = 0
    current = start
    while current <= end:
        if is_working_day(current):
            total += 1
        current += timedelta(days=1)
    return total


def working_day_counts(days: Sequence[date], today: date) -> tuple[int, int]:
    """Return ``(total_working_days, elapsed_working_days)`` for a sprint calendar."""
    working = [d for d in days if is_working_day(d)]
    return len(working), sum(1 for d in working if d <= today)


# ------------------ Velocity ------------------
@dataclass(frozen=True, slots=True)
class VelocitySnapshot:
    sprint_name: str
    start_date: date | None
    total_working_days: int
    working_days_elapsed: int
    total_committed: float
    total_delivered: float
    target_velocity: float
    current_velocity: float
    predicted_total: int
    uplift_needed_percent: float

    @property
    def remaining_points(self) -> float:
        return self.total_committed - self.total_delivered

    @property
    def remaining_days(self) -> int:
        return self.total_working_days - self.working_days_elapsed

    def to_dict(self) -> dict:
        return {
            "sprintName": self.sprint_name,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "totalWorkingDays": self.total_working_days,
            "workingDaysElapsed": self.working_days_elapsed,
            "totalCommitted": self.total_committed,
            "totalDelivered": self.total_delivered,
            "targetVelocity": round_half_up(self.target_velocity, 1),
            "currentVelocity": round_half_up(self.current_velocity, 1),
            "predictedTotal": self.predicted_total,
            "velocityUpliftNeeded": round_whole(self.uplift_needed_percent),
        }


def compute_velocity(
    total_committed: float,
    total_working_days: int,
    working_days_elapsed: int,
    total_delivered: float,
    *,
    sprint_name: str = "",
    start_date: date | None = None,
) -> VelocitySnapshot:
    """Derive target, current and predicted velocity for a sprint.

    Every division guards its denominator: a zero working-day count yields a
    zero velocity, and the uplift is 0 when no days remain or nothing has been
    delivered yet.
    """
    target = total_committed / total_working_days if total_working_days > 0 else 0.0
    current = total_delivered / working_days_elapsed if working_days_elapsed > 0 else 0.0
    predicted = round_whole(current * total_working_days)
    remaining_days = total_working_days - working_days_elapsed
    remaining_points = total_committed - total_delivered
    if remaining_days > 0 and current > 0:
        uplift = ((remaining_points / remaining_days) / current - 1) * 100
    else:
        uplift = 0.0
    return VelocitySnapshot(
        sprint_name=sprint_name,
        start_date=start_date,
        total_working_days=total_working_days,
        working_days_elapsed=working_days_elapsed,
        total_committed=total_committed,
        total_delivered=total_delivered,
        target_velocity=target,
        current_velocity=current,
        predicted_total=predicted,
        uplift_needed_percent=uplift,
    )


def delivery_status(delivery_percentage: float) -> str:
    if delivery_percentage >= 90:
        return "On Track"
    if delivery_percentage >= 70:
        return "At Risk"
    return "Off Track"


# ------------------ S-curve ------------------
def generate_s_curve_profile(days: int) -> list[float]:
    """Smoothstep ``t^2 (3 - 2t)`` sampled at ``t = i / (days - 1)``, normalized to sum to 1."""
    if days <= 0:
        return []
    if days == 1:
        return [1.0]
    t = np.linspace(0.0, 1.0, days)
    curve = t * t * (3 - 2 * t)
    return (curve / curve.sum()).tolist()


def s_curve_profile(days: int) -> list[float]:
    if days in S_CURVE_PROFILES:
        return list(S_CURVE_PROFILES[days])
    return generate_s_curve_profile(days)


def distribute_s_curve(total_points: float, working_days: int) -> list[float]:
    """Split ``total_points`` over ``working_days`` following the S-curve profile.

    Each day is rounded to 2 decimal places; whatever residual the profile and
    the rounding leave is added to the middle day so the days sum to the total.
    """
    profile = s_curve_profile(working_days)
    if not profile:
        return []
    total = Decimal(str(total_points))
    cents = Decimal("0.01")
    daily = [(total * Decimal(str(share))).quantize(cents, rounding=ROUND_HALF_UP) for share in profile]
    residual = total - sum(daily)
    if residual:
        daily[working_days // 2] += residual
    return [float(v) for v in daily]


def distribute_flat(total_points: float, working_days: int) -> float:
    """Points per working day for a flat burn, to 2 decimal places."""
    if total_points == 0 or working_days <= 0:
        return 0.0
    return round_half_up(total_points / working_days, 2)


# ------------------ Overrun ------------------
@dataclass(frozen=True, slots=True)
class OverrunProjection:
    total_remaining: float
    working_days_remaining: int
    days_needed: float | None
    overrun_days: int | None

    @property
    def status(self) -> str:
        if self.overrun_days is None:
            return "unknown"
        if self.overrun_days > 0:
            return "behind"
        if self.overrun_days < 0:
            return "ahead"
        return "on schedule"

    def to_dict(self) -> dict:
        return {
            "totalRemaining": self.total_remaining,
            "workingDaysRemaining": self.working_days_remaining,
            "daysNeeded": round_half_up(self.days_needed, 1) if self.days_needed is not None else None,
            "overrunDays": self.overrun_days,
            "status": self.status,
        }


def project_overrun(
    total_remaining: float,
    current_velocity: float,
    working_days_remaining: int,
) -> OverrunProjection:
    """Working days late (positive) or early (negative) at the current velocity.

    Undefined when nothing has been delivered yet: both ``days_needed`` and
    ``overrun_days`` are ``None`` and the status reads "unknown".
    """
    if current_velocity <= 0:
        return OverrunProjection(total_remaining, working_days_remaining, None, None)
    days_needed = total_remaining / current_velocity
    return OverrunProjection(
        total_remaining,
        working_days_remaining,
        days_needed,
        round_whole(days_needed - working_days_remaining),
    )


def required_daily_velocity(total_remaining: float, working_days_remaining: int) -> float:
    if working_days_remaining <= 0:
        return 0.0
    return total_remaining / working_days_remaining
