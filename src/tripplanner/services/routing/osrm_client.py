"""HTTP client for the OSRM route service."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class OSRMError(RuntimeError):
    """The routing engine answered, but not with a usable route."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OSRMRateLimitError(OSRMError):
    def __init__(self, message: str = "OSRM rate limit exceeded (HTTP 429)") -> None:
        super().__init__(message, status_code=429)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=5.0))

    async def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get the driving route through ``coordinates`` in order.

        Args:
            coordinates: Sequence of (lat, lon) tuples for the route waypoints

        Returns:
            The decoded OSRM response; ``routes[0]["legs"]`` holds one leg per
            consecutive pair of waypoints.

        Raises:
            OSRMRateLimitError: The service answered with HTTP 429.
            OSRMError: Any other HTTP error or a response code other than "Ok".
            ConnectionError: The service could not be reached.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM route endpoint expects coordinates as "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

        async with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.get(url, params=params)
                    break
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to reach OSRM service at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        "OSRM network error, retrying in %.1fs (attempt %d/%d): %s",
                        wait_time,
                        attempt,
                        self.max_retries,
                        e,
                    )
                    await asyncio.sleep(wait_time)

        if response.status_code == 429:
            raise OSRMRateLimitError()
        if response.is_error:
            raise OSRMError(
                f"OSRM route request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OSRMError("OSRM returned a response that is not JSON.", status_code=response.status_code) from e

        if data.get("code") != "Ok":
            error_msg = data.get("message") or data.get("code") or "Unknown OSRM route error"
            raise OSRMError(f"OSRM route request failed: {error_msg}", status_code=response.status_code)
        return data


async def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a minimal two-point route request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        client = OSRMClient(base_url=base, timeout=5.0, max_retries=0)
        # Two points in central Berlin
        data = await client.route([(52.517037, 13.388860), (52.496891, 13.385983)])
        return bool(data.get("routes"))
    except (OSRMError, ConnectionError, httpx.HTTPError):
        return False
