"""
Nager.Date API client.

Optional remote source of public holidays. The local rule table stays the
source of truth; remote results only refine holiday names and are merged by
HolidayCalendar when remote lookup is enabled.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.settings import MAX_RETRIES, NAGER_API_BASE_URL, NAGER_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class NagerDateError(Exception):
    """Raised when the Nager.Date API cannot be reached or returns bad data"""
    pass


class NagerDateClient:
    """
    Minimal client for ``GET /PublicHolidays/{year}/{countryCode}``.

    Retries idempotent GETs on 429/5xx responses through the session adapter.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or NAGER_API_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else NAGER_REQUEST_TIMEOUT

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=MAX_RETRIES,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS"],
                backoff_factor=1
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def fetch_public_holidays(self, year: int, country_code: str) -> List[Dict[str, Any]]:
        """
        Fetch public holidays for a country and year.

        Args:
            year: Calendar year
            country_code: ISO 3166-1 alpha-2 code, e.g. "CA"

        Returns:
            List of holiday objects as returned by the API (date, localName,
            name, global, counties, ...)

        Raises:
            NagerDateError: On transport errors, non-200 responses or bad JSON
        """
        url = f"{self.base_url}/PublicHolidays/{year}/{country_code.upper()}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NagerDateError(f"Request to {url} failed: {e}")

        if response.status_code != 200:
            raise NagerDateError(f"Nager.Date returned HTTP {response.status_code} for {url}")

        try:
            payload = response.json()
        except ValueError as e:
            raise NagerDateError(f"Invalid JSON from {url}: {e}")

        if not isinstance(payload, list):
            raise NagerDateError(f"Unexpected payload from {url}: expected a list")

        logger.info(f"Fetched {len(payload)} holidays from Nager.Date for {country_code} {year}")
        return payload
