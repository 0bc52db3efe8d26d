from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

from flowcore_catalog.config.env_loader import (
    EnvironmentConfigurationError,
    get_float,
    get_int,
    get_list,
    get_str,
)
from flowcore_catalog.config.useragent_list import DEFAULT_USER_AGENT

DEFAULT_BASE_URL = "https://dflix.discoveryftp.net"
DEFAULT_LOGIN_PATH = "/login"
DEFAULT_LISTING_PATH = "/m"

DEFAULT_DIRECTORY_PROBE_PATHS: tuple[str, ...] = (
    "/Movies",
    "/Movies/Hindi",
    "/Movies/English",
    "/Movies/2024",
    "/Movies/2025",
    "/m/Hindi",
    "/m/English",
    "/m/2024",
    "/m/2025",
    "/content/Movies",
    "/files/Movies",
)


@dataclass
class CrawlerSettings:
    """Opaque values consumed by the crawler core.

    Built once at process start by :func:`load_settings` (or directly in tests)
    and handed to every component by reference.
    """

    base_url: str = DEFAULT_BASE_URL
    login_url: str = ""
    listing_url: str = ""
    request_timeout: float = 30.0
    max_auth_retries: int = 3
    auth_backoff_seconds: float = 2.0
    session_ttl_minutes: float = 60.0
    request_delay: float = 0.5
    max_pagination_pages: int = 20
    enrich_batch_size: int = 5
    enrich_batch_pause: float = 1.0
    directory_subdir_cap: int = 50
    directory_recurse_limit: int = 10
    directory_probe_paths: tuple[str, ...] = DEFAULT_DIRECTORY_PROBE_PATHS
    user_agent: str = DEFAULT_USER_AGENT
    extra_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.base_url = _sanitize_base_url(self.base_url, "CATALOG_BASE_URL")
        if not self.login_url:
            self.login_url = self.base_url + DEFAULT_LOGIN_PATH
        if not self.listing_url:
            self.listing_url = self.base_url + DEFAULT_LISTING_PATH
        self.directory_probe_paths = tuple(self.directory_probe_paths)

    def resolve(self, href: str) -> str:
        """Resolve ``href`` against the configured base URL, ``""`` when malformed."""

        try:
            return urljoin(self.base_url + "/", href)
        except ValueError:
            return ""


def _sanitize_base_url(raw_value: str | None, env_name: str) -> str:
    """Normalize BASE_URL style inputs to avoid malformed URLs."""

    if raw_value is None:
        raise EnvironmentConfigurationError(f"Missing environment variable {env_name}")

    candidate = raw_value.strip().rstrip("!?#'\"").rstrip("/ \t\n\r")
    if not candidate:
        raise EnvironmentConfigurationError(f"Environment variable {env_name} must not be empty")

    if not urlparse(candidate).scheme:
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if not parsed.netloc:
        raise EnvironmentConfigurationError(
            f"Environment variable {env_name} must be an absolute URL, got {raw_value!r}"
        )
    return candidate


def _normalize_positive_int(value: int | None, *, default: int, minimum: int = 1) -> int:
    candidate = value if value is not None else default
    return max(int(candidate), minimum)


def _normalize_positive_float(
    value: float | None, *, default: float, minimum: float = 0.0
) -> float:
    candidate = value if value is not None else default
    return max(float(candidate), minimum)


def load_settings() -> CrawlerSettings:
    """Build :class:`CrawlerSettings` from the process environment."""

    base_url = _sanitize_base_url(get_str("CATALOG_BASE_URL") or DEFAULT_BASE_URL, "CATALOG_BASE_URL")
    probe_paths = get_list("DIRECTORY_PROBE_PATHS")

    return CrawlerSettings(
        base_url=base_url,
        login_url=get_str("CATALOG_LOGIN_URL") or "",
        listing_url=get_str("CATALOG_LISTING_URL") or "",
        request_timeout=_normalize_positive_float(
            get_float("TIMEOUT_REQUEST"), default=30.0, minimum=1.0
        ),
        max_auth_retries=_normalize_positive_int(get_int("MAX_AUTH_RETRIES"), default=3),
        auth_backoff_seconds=_normalize_positive_float(
            get_float("AUTH_BACKOFF_SECONDS"), default=2.0
        ),
        session_ttl_minutes=_normalize_positive_float(
            get_float("SESSION_TTL_MINUTES"), default=60.0, minimum=1.0
        ),
        request_delay=_normalize_positive_float(get_float("REQUEST_DELAY"), default=0.5),
        max_pagination_pages=_normalize_positive_int(
            get_int("MAX_PAGINATION_PAGES"), default=20, minimum=0
        ),
        enrich_batch_size=_normalize_positive_int(get_int("ENRICH_BATCH_SIZE"), default=5),
        enrich_batch_pause=_normalize_positive_float(get_float("ENRICH_BATCH_PAUSE"), default=1.0),
        directory_subdir_cap=_normalize_positive_int(get_int("DIRECTORY_SUBDIR_CAP"), default=50),
        directory_recurse_limit=_normalize_positive_int(
            get_int("DIRECTORY_RECURSE_LIMIT"), default=10, minimum=0
        ),
        directory_probe_paths=tuple(probe_paths) if probe_paths else DEFAULT_DIRECTORY_PROBE_PATHS,
        user_agent=get_str("USER_AGENT") or DEFAULT_USER_AGENT,
    )


def default_headers(settings: CrawlerSettings) -> dict[str, str]:
    """Browser-like headers sent with every request of the shared session."""

    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Upgrade-Insecure-Requests": "1",
    }
    headers.update(settings.extra_headers)
    return headers


__all__ = [
    "CrawlerSettings",
    "DEFAULT_DIRECTORY_PROBE_PATHS",
    "default_headers",
    "load_settings",
]
