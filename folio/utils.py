import math
from datetime import datetime, date, time, timedelta, timezone
from dateutil import tz
from dateutil.relativedelta import relativedelta

def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def to_local_date(dt_utc: datetime, local_tz: str, cutover_hhmm: str) -> date:
    tzinfo = tz.gettz(local_tz)
    loc = dt_utc.astimezone(tzinfo)
    hh, mm = cutover_hhmm.split(":"); cut = time(int(hh), int(mm))
    # If before cutover treat as previous local date
    if loc.timetz() < cut.replace(tzinfo=loc.tzinfo):
        loc = (loc - timedelta(days=1))
    return loc.date()

def parse_date(val) -> date | None:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None

def coerce_float(val, default: float | None = 0.0) -> float | None:
    """Finite float or ``default``; NaN and infinities count as missing."""
    if val is None or isinstance(val, bool):
        return default
    try:
        out = float(val)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(out):
        return default
    return out

def parse_enum(cls, val):
    """Member of ``cls`` matched by value or name, ignoring case; None if no match."""
    if val is None or isinstance(val, cls):
        return val
    text = str(val).strip().lower()
    for member in cls:
        if member.value.lower() == text or member.name.lower() == text:
            return member
    return None

def safe_divide(a: float, b: float) -> float:
    if not b or not math.isfinite(b):
        return 0.0
    return a / b

def month_start(d: date) -> date:
    return d.replace(day=1)

def month_end(d: date) -> date:
    return month_start(d) + relativedelta(months=1) - timedelta(days=1)

def month_end_grid(start: date, end: date) -> list[date]:
    """Month-ends from ``start``'s month up to ``end``; the last one is clamped to ``end``."""
    out = []
    cur = month_end(start)
    while cur < end:
        out.append(cur)
        cur = month_end(cur + timedelta(days=1))
    if start <= end:
        out.append(end)
    return out

def day_grid(start: date, end: date) -> list[date]:
    days = (end - start).days
    return [start + timedelta(days=i) for i in range(days + 1)]
