"""Generated identifiers: student/center/paper/application ids and certificate numbers."""
import logging
import secrets
from datetime import datetime
from typing import Callable

from fastapi import HTTPException
from pymongo.database import Database

from ..database import utcnow

logger = logging.getLogger(__name__)

CERTIFICATE_NUMBER_MIN = 10_000_000
CERTIFICATE_NUMBER_SPAN = 90_000_000


def _year_suffix(now: datetime | None) -> str:
    return f"{(now or utcnow()).year % 100:02d}"


def generate_student_id(now: datetime | None = None) -> str:
    return f"STU{_year_suffix(now)}{secrets.randbelow(10_000):04d}"


def generate_center_id() -> str:
    return f"KR{secrets.randbelow(10_000_000):07d}"


def generate_paper_id() -> str:
    return f"P{1000 + secrets.randbelow(9000)}"


def generate_application_id(now: datetime | None = None) -> str:
    return f"APP{_year_suffix(now)}{secrets.randbelow(10_000):04d}"


def generate_certificate_number() -> str:
    return str(CERTIFICATE_NUMBER_MIN + secrets.randbelow(CERTIFICATE_NUMBER_SPAN))


def temp_certificate_number(application_id: str) -> str:
    """Stable 8-digit stand-in shown until a real number is persisted.

    Rolling ``h * 31 + c`` over UTF-16 code units with signed 32-bit
    wrap-around, so the same id always maps to the same number.
    """
    data = application_id.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return str(CERTIFICATE_NUMBER_MIN + abs(h) % CERTIFICATE_NUMBER_SPAN)


def generate_unique(
    db: Database,
    collection: str,
    field: str,
    generator: Callable[[], str],
    attempts: int = 20,
) -> str:
    for _ in range(attempts):
        candidate = generator()
        if db[collection].find_one({field: candidate}, {"_id": 1}) is None:
            return candidate
        logger.info("Generated %s %s already taken, retrying", field, candidate)
    raise HTTPException(status_code=500, detail=f"Could not allocate a unique {field}")
