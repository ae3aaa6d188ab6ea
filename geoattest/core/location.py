"""
Position and Clock Capture

Thin bindings to the host's location and clock services, used by the signer
to fill in a Payload. Positions come from a pluggable provider:

- StaticLocationProvider: a fixed, configured device position
- HttpLocationProvider: a local service returning {"latitude", "longitude"}
  JSON (e.g. a gpsd bridge or a phone companion app)

Capture waits at most `timeout` seconds and reuses a cached fix younger than
`maximum_age` seconds.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx

from geoattest.core.config import Settings, get_settings
from geoattest.core.signing.canonical import round_coordinate

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAXIMUM_AGE_SECONDS = 60.0


class LocationUnavailable(RuntimeError):
    """No position could be obtained (no provider, declined, or timed out)."""


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Fix:
    """A raw reading from a provider. captured_at is time.monotonic()."""
    latitude: float
    longitude: float
    captured_at: float


LocationProvider = Callable[[], Awaitable[Fix]]


class StaticLocationProvider:
    """Reports a fixed position, e.g. a stationary kiosk or test rig."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    async def __call__(self) -> Fix:
        return Fix(self.latitude, self.longitude, time.monotonic())


class HttpLocationProvider:
    """Fetches a position from an HTTP endpoint returning latitude/longitude JSON."""

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def __call__(self) -> Fix:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(self.url)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise LocationUnavailable(
                    f"Location service returned {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise LocationUnavailable(f"Location service unreachable: {e}") from e
            except ValueError as e:
                raise LocationUnavailable(f"Location service returned invalid JSON: {e}") from e

        try:
            return Fix(float(data["latitude"]), float(data["longitude"]), time.monotonic())
        except (KeyError, TypeError, ValueError) as e:
            raise LocationUnavailable(f"Location service response missing coordinates: {data!r}") from e


class PositionCache:
    """
    Holds the most recent fix per provider; one fetch in flight at a time.

    The lock is created per running event loop, so one cache may serve
    successive loops (e.g. repeated asyncio.run calls).
    """

    def __init__(self):
        self._provider: Optional[LocationProvider] = None
        self._fix: Optional[Fix] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def get(self, provider: LocationProvider, maximum_age: float) -> Optional[Fix]:
        if self._fix is None or self._provider is not provider:
            return None
        if time.monotonic() - self._fix.captured_at > maximum_age:
            return None
        return self._fix

    def put(self, provider: LocationProvider, fix: Fix) -> None:
        self._provider = provider
        self._fix = fix

    def clear(self) -> None:
        self._provider = None
        self._fix = None


_default_cache = PositionCache()
_configured_provider: Optional[LocationProvider] = None


def provider_from_settings(settings: Optional[Settings] = None) -> Optional[LocationProvider]:
    """Pick a provider from configuration: static position first, then HTTP."""
    settings = settings or get_settings()
    if settings.has_static_location:
        return StaticLocationProvider(settings.location_latitude, settings.location_longitude)
    if settings.location_url:
        return HttpLocationProvider(settings.location_url, timeout=settings.location_timeout_seconds)
    return None


def get_configured_provider() -> Optional[LocationProvider]:
    """The settings-derived provider, built once so cached fixes can be reused."""
    global _configured_provider
    if _configured_provider is None:
        _configured_provider = provider_from_settings()
    return _configured_provider


async def capture_current_position(
    provider: Optional[LocationProvider] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    maximum_age: float = DEFAULT_MAXIMUM_AGE_SECONDS,
    cache: Optional[PositionCache] = None,
) -> Position:
    """
    Get the current position, rounded to 3 decimals.

    Args:
        provider: Location source (default: from settings)
        timeout: Maximum seconds to wait for a fresh fix
        maximum_age: Reuse a cached fix younger than this many seconds
        cache: Fix cache (default: module-wide cache)

    Returns:
        Position with rounded latitude/longitude

    Raises:
        LocationUnavailable: If no provider is configured, it fails, or it times out
    """
    if provider is None:
        provider = get_configured_provider()
    if provider is None:
        raise LocationUnavailable("No location provider configured (set LOCATION_LATITUDE/LONGITUDE or LOCATION_URL)")

    cache = cache or _default_cache
    async with cache.lock:
        fix = cache.get(provider, maximum_age)
        if fix is None:
            try:
                fix = await asyncio.wait_for(provider(), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise LocationUnavailable(f"No position fix within {timeout:g}s") from e
            except LocationUnavailable:
                raise
            except Exception as e:
                raise LocationUnavailable(f"Location provider failed: {e}") from e
            cache.put(provider, fix)
            logger.debug(f"New position fix: {fix.latitude}, {fix.longitude}")
        else:
            logger.debug("Using cached position fix")

    return Position(round_coordinate(fix.latitude), round_coordinate(fix.longitude))


def current_timestamp(now: Optional[datetime] = None) -> str:
    """
    Current instant as ISO-8601 UTC with milliseconds, e.g. 2024-01-01T00:00:00.000Z.

    Naive datetimes are taken to be UTC.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return f"{now:%Y-%m-%dT%H:%M:%S}.{now.microsecond // 1000:03d}Z"
