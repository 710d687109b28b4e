"""
Weekly summary built on top of AiProviderService.

AI is optional here: when inference fails the caller still gets a summary,
built from the aggregated numbers, with ai_summary_generated=False and the
failure text in ai_error.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Optional, Protocol, Set

from babyai.core.errors import BabyAIError

logger = logging.getLogger(__name__)

FALLBACK_NOTE = "(AI insights unavailable - showing data summary)"

# Keeps detached tasks alive until they finish
_background_tasks: Set["asyncio.Task[Any]"] = set()


@dataclass(frozen=True)
class WeeklySummaryData:
    baby_name: str
    baby_age_months: int
    week_start: date
    week_end: date
    total_sleep_minutes: int = 0
    nap_count: int = 0
    total_feedings: int = 0
    breastfeeding_count: int = 0
    bottle_count: int = 0
    diaper_changes: int = 0
    wet_count: int = 0
    dirty_count: int = 0
    total_activities: int = 0
    tummy_time_minutes: int = 0
    latest_weight_grams: Optional[float] = None

    def prompt_variables(self) -> dict:
        growth = (
            f"Latest weight: {self.latest_weight_grams / 1000:.2f} kg"
            if self.latest_weight_grams is not None
            else "No measurements this week"
        )
        return {
            "babyName": self.baby_name,
            "babyAgeMonths": self.baby_age_months,
            "weekStart": self.week_start.isoformat(),
            "weekEnd": self.week_end.isoformat(),
            "sleepSummary": f"Total sleep: {round(self.total_sleep_minutes / 60)} hours, {self.nap_count} naps",
            "feedingSummary": (
                f"{self.total_feedings} feedings "
                f"({self.breastfeeding_count} breastfeeding, {self.bottle_count} bottle)"
            ),
            "diaperSummary": f"{self.diaper_changes} changes ({self.wet_count} wet, {self.dirty_count} dirty)",
            "growthData": growth,
            "activitiesSummary": f"{self.total_activities} activities, {self.tummy_time_minutes} min tummy time",
        }


@dataclass(frozen=True)
class WeeklySummary:
    baby_name: str
    week_start: date
    week_end: date
    data: WeeklySummaryData
    ai_summary: str
    ai_summary_generated: bool
    ai_error: Optional[str] = None
    ai_duration_ms: Optional[float] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InsightRecorder(Protocol):
    async def record(self, caregiver_id: Optional[str], summary: WeeklySummary) -> None: ...


def fallback_summary(data: WeeklySummaryData) -> str:
    lines = [
        f"Weekly Summary for {data.baby_name}",
        f"Week: {data.week_start.isoformat()} to {data.week_end.isoformat()}",
        "",
        "Sleep:",
        f"- Total: {round(data.total_sleep_minutes / 60)} hours",
        f"- {data.nap_count} naps",
        "",
        "Feeding:",
        f"- {data.total_feedings} total feedings",
        f"- {data.breastfeeding_count} breastfeeding, {data.bottle_count} bottle",
        "",
        "Diapers:",
        f"- {data.diaper_changes} changes",
        f"- {data.wet_count} wet, {data.dirty_count} dirty",
        "",
        "Activities:",
        f"- {data.total_activities} activities",
        f"- {data.tummy_time_minutes} min tummy time",
    ]
    if data.latest_weight_grams is not None:
        lines += ["", "Growth:", f"- Weight: {data.latest_weight_grams / 1000:.2f} kg"]
    lines += ["", FALLBACK_NOTE]
    return "\n".join(lines)


def fire_and_forget(coro: Awaitable[Any], *, name: str = "background task", log: Optional[logging.Logger] = None) -> "asyncio.Task[Any]":
    """
    Schedule *coro* without awaiting it. Failures are logged, never raised
    into the caller. Must be called from a running event loop.
    """
    log = log or logger
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)

    def _done(t: "asyncio.Task[Any]") -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            log.debug("%s was cancelled", name)
            return
        exc = t.exception()
        if exc is not None:
            log.error("%s failed: %s", name, exc, exc_info=exc)

    task.add_done_callback(_done)
    return task


async def build_weekly_summary(
    service,
    data: WeeklySummaryData,
    caregiver_id: Optional[str] = None,
    recorder: Optional[InsightRecorder] = None,
) -> WeeklySummary:
    ai_error: Optional[str] = None
    ai_duration: Optional[float] = None
    try:
        result = await service.generate_weekly_summary(data.prompt_variables(), caregiver_id)
    except BabyAIError as e:
        logger.warning("AI weekly summary failed for %s: %s", data.baby_name, e)
        result = None
        ai_error = str(e) or type(e).__name__

    if result is not None and result.text.strip():
        text = result.text
        generated = True
        ai_duration = result.duration_ms
    else:
        if result is not None:
            ai_error = "AI returned an empty summary"
        text = fallback_summary(data)
        generated = False

    summary = WeeklySummary(
        baby_name=data.baby_name,
        week_start=data.week_start,
        week_end=data.week_end,
        data=data,
        ai_summary=text,
        ai_summary_generated=generated,
        ai_error=ai_error,
        ai_duration_ms=ai_duration,
    )
    if generated and recorder is not None:
        fire_and_forget(recorder.record(caregiver_id, summary), name="record weekly insight")
    return summary
