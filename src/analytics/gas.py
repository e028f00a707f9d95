"""
Gas cylinder projection.

Stock is never stored: it is replayed from the log in chronological order.
REFILL adds, USAGE subtracts, ADJUSTMENT overwrites with a physical count.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

from src.models.gas import GasConfig, GasLog, GasLogType, GasState


DEFAULT_USAGE_WINDOW_DAYS = 60

_ONE_DAY = timedelta(days=1)


def local_now() -> datetime:
    return datetime.now()


def to_local_naive(moment: datetime) -> datetime:
    """Express an aware timestamp in local wall-clock time; naive ones are already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def _chronological(logs: Iterable[GasLog]) -> list[GasLog]:
    return sorted(logs, key=lambda log: to_local_naive(log.timestamp))


def _whole_days(delta: timedelta) -> int:
    return math.floor(delta / _ONE_DAY)


def gas_stock(logs: Iterable[GasLog]) -> int:
    """Running stock after replaying every log oldest first. May be negative."""
    stock = 0
    for log in _chronological(logs):
        if log.type is GasLogType.REFILL:
            stock += log.count
        elif log.type is GasLogType.USAGE:
            stock -= log.count
        elif log.type is GasLogType.ADJUSTMENT:
            stock = log.count
    return stock


def average_daily_usage(
    logs: Iterable[GasLog],
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_USAGE_WINDOW_DAYS,
) -> float:
    """
    Cylinders used per day over the trailing window.

    Sum of USAGE counts inside the window divided by the whole days between
    the earliest of those logs and now. The divisor is at least 1.
    """
    current = to_local_naive(now) if now is not None else local_now()
    cutoff = current - timedelta(days=window_days)
    recent = [
        (to_local_naive(log.timestamp), log.count)
        for log in logs
        if log.type is GasLogType.USAGE
    ]
    recent = [(moment, count) for moment, count in recent if moment >= cutoff]
    if not recent:
        return 0.0

    used = sum(count for _, count in recent)
    earliest = min(moment for moment, _ in recent)
    span = max(1, _whole_days(current - earliest))
    return used / span


def projected_days_left(stock: int, avg_daily_usage: float) -> Optional[int]:
    """Whole days the stock lasts; None when usage is unknown."""
    if not avg_daily_usage or avg_daily_usage <= 0 or not math.isfinite(avg_daily_usage):
        return None
    return math.floor(max(0, stock) / avg_daily_usage)


def days_since_last_swap(logs: Iterable[GasLog], now: Optional[datetime] = None) -> int:
    """Whole days since the newest USAGE entry, -1 when there is none."""
    usage = [to_local_naive(log.timestamp) for log in logs if log.type is GasLogType.USAGE]
    if not usage:
        return -1
    current = to_local_naive(now) if now is not None else local_now()
    return _whole_days(current - max(usage))


def compute_gas_state(
    logs: Iterable[GasLog],
    config: GasConfig,
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_USAGE_WINDOW_DAYS,
) -> GasState:
    """Derive the full gas picture from the log and the cylinder setup."""
    entries = list(logs)
    raw_stock = gas_stock(entries)
    stock = max(0, raw_stock)
    avg = average_daily_usage(entries, now=now, window_days=window_days)
    empty = max(0, config.total_cylinders - config.cylinders_per_bank - stock)

    return GasState(
        current_stock=stock,
        raw_stock=raw_stock,
        empty_cylinders=empty,
        avg_daily_usage=avg,
        days_since_last_swap=days_since_last_swap(entries, now=now),
        projected_days_left=projected_days_left(stock, avg),
    )
