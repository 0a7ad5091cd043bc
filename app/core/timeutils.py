import datetime


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def ensure_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)
