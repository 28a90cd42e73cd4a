from datetime import datetime

from app.core.config import report_timezone


def request_now() -> datetime:
    """Current instant in the business time zone; overridden in tests."""
    return datetime.now(report_timezone())
