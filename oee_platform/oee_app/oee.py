"""OEE calculation over a single time window.

OEE = Availability x Performance x Quality, each expressed as a 0-100
percentage. The calculator filters every record list against the same
window and the same machine before computing any factor.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

DEFAULT_IDEAL_CYCLE_TIME_S = 10.0


@dataclass
class OEEResult:
    availability: float
    performance: float
    quality: float
    oee: float
    total_cycles: int
    good_cycles: int
    defective_cycles: int
    theoretical_seconds: float
    stoppage_seconds: float
    available_seconds: float
    ideal_cycle_time_s: float
    ideal_cycles: int
    scrap_quantity: float


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def as_number(value: Any) -> float:
    """Coerce to float; anything missing, non-numeric or non-finite is 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _matches_machine(record: Any, machine_code: str | None) -> bool:
    if machine_code is None:
        return True
    code = _field(record, "machine_code")
    return str(code or "").strip().upper() == machine_code.strip().upper()


def _in_window(record: Any, window_start: datetime, window_end: datetime) -> bool:
    ts = _field(record, "timestamp")
    if not isinstance(ts, datetime):
        return False
    return window_start <= ts <= window_end


def stoppage_overlap_seconds(
    stop_end: datetime,
    duration_seconds: Any,
    window_start: datetime,
    window_end: datetime,
) -> float:
    """Seconds of a stoppage that fall inside the window.

    ``stop_end`` is the stoppage timestamp; the stop began
    ``duration_seconds`` earlier.
    """
    duration = max(0.0, as_number(duration_seconds))
    stop_start = stop_end - timedelta(seconds=duration)
    overlap = (min(stop_end, window_end) - max(stop_start, window_start)).total_seconds()
    return max(0.0, overlap)


def resolve_ideal_cycle_time(link: Any) -> float | None:
    """Ideal seconds per unit for a product-machine link, if known."""
    if link is None:
        return None
    cycle_time = as_number(_field(link, "ideal_cycle_time_s"))
    if cycle_time > 0:
        return cycle_time
    rate = as_number(_field(link, "ideal_rate_per_hour"))
    if rate > 0:
        return 3600.0 / rate
    return None


def compute_quality(cycles: list) -> tuple[float, int, int]:
    total = len(cycles)
    good = sum(1 for c in cycles if not _field(c, "is_defective", False))
    if total == 0:
        return 0.0, 0, 0
    return good / total * 100.0, total, good


def compute_oee(
    cycles: Iterable,
    stoppages: Iterable,
    scrap: Iterable,
    window_start: datetime,
    window_end: datetime,
    hours_per_day: Any,
    window_days: Any,
    ideal_cycle_time_s: Any = None,
    machine_code: str | None = None,
) -> OEEResult:
    window_cycles = [
        c for c in cycles
        if _matches_machine(c, machine_code) and _in_window(c, window_start, window_end)
    ]
    window_scrap = [
        s for s in scrap
        if _matches_machine(s, machine_code) and _in_window(s, window_start, window_end)
    ]

    stoppage_seconds = 0.0
    for stop in stoppages:
        stop_end = _field(stop, "timestamp")
        if not isinstance(stop_end, datetime) or not _matches_machine(stop, machine_code):
            continue
        stoppage_seconds += stoppage_overlap_seconds(
            stop_end, _field(stop, "duration_seconds"), window_start, window_end
        )

    # Availability
    theoretical = max(0.0, as_number(hours_per_day) * 3600.0 * as_number(window_days))
    available = max(0.0, theoretical - stoppage_seconds)
    availability = available / theoretical * 100.0 if theoretical > 0 else 100.0

    # Performance
    cycle_time = as_number(ideal_cycle_time_s)
    if cycle_time <= 0:
        cycle_time = DEFAULT_IDEAL_CYCLE_TIME_S
    ideal_cycles = math.floor(available / cycle_time)
    actual = len(window_cycles)
    performance = max(0.0, actual / ideal_cycles * 100.0) if ideal_cycles > 0 else 0.0

    # Quality
    quality, total, good = compute_quality(window_cycles)

    oee = availability * performance * quality / 10000.0
    oee = min(100.0, max(0.0, oee))

    return OEEResult(
        availability=availability,
        performance=performance,
        quality=quality,
        oee=oee,
        total_cycles=total,
        good_cycles=good,
        defective_cycles=total - good,
        theoretical_seconds=theoretical,
        stoppage_seconds=stoppage_seconds,
        available_seconds=available,
        ideal_cycle_time_s=cycle_time,
        ideal_cycles=ideal_cycles,
        scrap_quantity=sum(as_number(_field(s, "quantity")) for s in window_scrap),
    )
