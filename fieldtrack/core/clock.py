from datetime import datetime, timezone


class SystemClock:
    """Single source of "now" for every timestamp the services write.

    Returns naive UTC datetimes, the format stored in the database.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


system_clock = SystemClock()
