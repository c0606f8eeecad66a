"""
EcoPlate Backend — Date Helpers
================================

All timestamps are stored in UTC. Sustainability metrics are bucketed by a
plain `YYYY-MM-DD` string so that SQLite and PostgreSQL compare them the
same way.
"""

from datetime import date, datetime, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def today_str(now: Optional[datetime] = None) -> str:
    """Current UTC date as YYYY-MM-DD."""
    return (now or utcnow()).strftime(DATE_FORMAT)


def parse_date_str(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def subtract_months(moment: datetime, months: int) -> datetime:
    """First day of the month `months` before `moment` (time of day kept)."""
    total = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(total, 12)
    return moment.replace(year=year, month=month + 1, day=1)
