from datetime import date, datetime, time, timedelta

PRIORITY_CHOICES = {"low": "Low", "medium": "Medium", "high": "High"}


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def parse_int(value, default=None):
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_todo_id(raw):
    """Return a positive integer id, or None when the value is not a well-formed id."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    s = str(raw or "").strip()
    if not s.isdigit():
        return None
    value = int(s)
    return value if value > 0 else None


def normalize_ids(raw_ids):
    ids = []
    for raw_id in raw_ids or []:
        todo_id = parse_todo_id(raw_id)
        if todo_id is not None and todo_id not in ids:
            ids.append(todo_id)
    return ids


def _to_local_naive(dt):
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def parse_date(value):
    """Parse a loosely-typed date into a naive local datetime; None on anything unusable."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        try:
            return _to_local_naive(value)
        except (OverflowError, ValueError):
            return None
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as sent by browser Date objects
        try:
            return datetime.fromtimestamp(value / 1000.0)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        return _to_local_naive(datetime.fromisoformat(s))
    except (OverflowError, ValueError):
        return None


def normalize_priority(value):
    return PRIORITY_CHOICES.get(str(value or "").strip().lower(), "Low")


def start_of_day(d=None):
    d = d or datetime.now()
    return datetime.combine(d.date() if isinstance(d, datetime) else d, time.min)


def end_of_day(d=None):
    d = d or datetime.now()
    # Millisecond precision, like the timestamps clients send
    return datetime.combine(d.date() if isinstance(d, datetime) else d, time(23, 59, 59, 999000))


def add_days(d, n):
    return d + timedelta(days=n)


def days_ago(n, now=None):
    return add_days(now or datetime.now(), -n)


def to_iso(value):
    return value.isoformat() if value else None
