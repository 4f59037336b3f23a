from datetime import date, datetime, timezone, tzinfo


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def venue_now(tz: tzinfo) -> datetime:
    """Current wall-clock time in the venue zone, naive like stored slot times."""
    return datetime.now(tz).replace(tzinfo=None)


def venue_today(tz: tzinfo) -> date:
    return venue_now(tz).date()


def to_venue_naive(dt: datetime, tz: tzinfo) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(tz).replace(tzinfo=None)


def venue_naive_to_aware(dt: datetime, tz: tzinfo) -> datetime:
    return dt.replace(tzinfo=tz)
