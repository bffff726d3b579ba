import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from oee_app.models import AttentionReason, StockStatus

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")
_MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class StockAttention:
    status: str
    needs_attention: bool
    attention_reason: str | None


def merge_fields(current: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Overlay only the fields present in ``updates`` onto ``current``."""
    merged = dict(current)
    merged.update(updates)
    return merged


def _is_expired(expiry_date: date | datetime | None, now: datetime) -> bool:
    if expiry_date is None:
        return False
    if isinstance(expiry_date, datetime):
        return expiry_date < now
    # a bare date expires at the start of that day
    return datetime.combine(expiry_date, time.min) < now


def derive_stock_status(
    current_qty: float | None,
    min_qty: float | None,
    max_qty: float | None,
    expiry_date: date | datetime | None,
    now: datetime,
    status: str | None = StockStatus.ACTIVE.value,
) -> StockAttention:
    """Derive status and the attention flag from stock levels and expiry.

    Rules, first quantity match wins:
      1. negative stock -> depleted, low-stock
      2. at or below minimum -> low-stock, status unchanged
      3. at or above a set maximum -> high-stock
    Independently, an expiry before now -> expired, and near-expiry when no
    quantity reason was set. A bare date counts from its midnight.

    ``status`` is the stored base status. Depleted and expired are derived,
    so they fall back to active before the rules run.
    """
    current = current_qty or 0
    minimum = min_qty or 0

    base = status or StockStatus.ACTIVE.value
    if base in (StockStatus.DEPLETED.value, StockStatus.EXPIRED.value):
        base = StockStatus.ACTIVE.value

    needs_attention = False
    reason = None

    if current < 0:
        needs_attention = True
        reason = AttentionReason.LOW_STOCK.value
        base = StockStatus.DEPLETED.value
    elif current <= minimum:
        needs_attention = True
        reason = AttentionReason.LOW_STOCK.value
    elif max_qty and current >= max_qty:
        needs_attention = True
        reason = AttentionReason.HIGH_STOCK.value

    if _is_expired(expiry_date, now):
        base = StockStatus.EXPIRED.value
        needs_attention = True
        if reason is None:
            reason = AttentionReason.NEAR_EXPIRY.value

    return StockAttention(status=base, needs_attention=needs_attention, attention_reason=reason)


def parse_hhmm(value: str) -> int:
    """Minutes since midnight for an ``H:MM`` or ``HH:MM`` string."""
    match = _HHMM.match(str(value).strip())
    if match is None:
        raise ValueError(f"Invalid time {value!r} (expected HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


def compute_shift_duration(start_hhmm: str | None, end_hhmm: str | None) -> float | None:
    if not start_hhmm or not end_hhmm:
        return None
    start = parse_hhmm(start_hhmm)
    end = parse_hhmm(end_hhmm)
    if end < start:
        end += _MINUTES_PER_DAY
    hours = Decimal(end - start) / Decimal(60)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
