"""
Public holiday lookup, cached per calendar year.

Holidays come from the Nager.Date API (``/PublicHolidays/{year}/{country}``).
A year's calendar does not change once published, so cached years never
expire. A failed fetch is logged and treated as "no holidays" without being
cached, so the next dashboard request tries again.
"""

import logging
import os
import threading
from datetime import date
from typing import Callable, Iterable

import httpx

logger = logging.getLogger(__name__)

HOLIDAY_API_BASE_URL = os.getenv("HOLIDAY_API_BASE_URL", "https://date.nager.at/api/v3").rstrip("/")
HOLIDAY_COUNTRY_CODE = os.getenv("HOLIDAY_COUNTRY_CODE", "VN")
HOLIDAY_API_TIMEOUT = float(os.getenv("HOLIDAY_API_TIMEOUT", "10"))

HolidayFetcher = Callable[[int, str], Iterable[date]]


def fetch_public_holidays(year: int, country_code: str) -> set[date]:
    url = f"{HOLIDAY_API_BASE_URL}/PublicHolidays/{year}/{country_code}"
    with httpx.Client(timeout=HOLIDAY_API_TIMEOUT) as client:
        r = client.get(url)
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, list):
        raise ValueError(f"Unexpected holiday payload for {country_code} {year}: {type(data).__name__}")
    return {date.fromisoformat(h["date"][:10]) for h in data if h.get("date")}


class HolidayCalendar:
    def __init__(self, country_code: str = HOLIDAY_COUNTRY_CODE, fetcher: HolidayFetcher | None = None):
        self.country_code = country_code
        self._fetch = fetcher or fetch_public_holidays
        self._cache: dict[int, frozenset[date]] = {}
        self._lock = threading.Lock()

    def holidays_for(self, year: int) -> frozenset[date]:
        cached = self._cache.get(year)
        if cached is not None:
            return cached
        try:
            days = frozenset(self._fetch(year, self.country_code))
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            logger.error("Failed to fetch %s public holidays for %s", self.country_code, year, exc_info=True)
            return frozenset()
        with self._lock:
            return self._cache.setdefault(year, days)

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays_for(day.year)

    @property
    def cached_years(self) -> list[int]:
        return sorted(self._cache)
