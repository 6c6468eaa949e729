"""
Central Configuration Module for Track Report

Everything here comes from the environment; engine thresholds live in
config.yaml instead (see utils.helpers.load_config).

Covers:
- TLS verification for the summarizer endpoint
- Outbound proxies
- Summarizer endpoint, credentials, model and retry policy
- Location of the SQLite track/report database
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import certifi


logger = logging.getLogger(__name__)


DEFAULT_SUMMARIZER_URL = "https://api.openai.com"
DEFAULT_SUMMARIZER_MODEL = "gpt-3.5-turbo"
DEFAULT_DB_PATH = ".data/track_report.db"


def _first_env(*names: str) -> str | None:
    """Value of the first environment variable that is set and non-empty."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SSLConfig:
    """How summarizer HTTPS certificates are verified."""

    # Development escape hatch; never enable against a real endpoint
    insecure_ssl: bool = False
    ca_bundle_path: str | None = None

    @classmethod
    def from_env(cls) -> "SSLConfig":
        """Read TRACK_REPORT_INSECURE_SSL and TRACK_REPORT_CA_BUNDLE."""
        ssl = cls(
            insecure_ssl=_env_flag("TRACK_REPORT_INSECURE_SSL"),
            ca_bundle_path=_first_env("TRACK_REPORT_CA_BUNDLE"),
        )

        if ssl.insecure_ssl:
            logger.warning("TLS verification disabled for summarizer requests")
        elif ssl.ca_bundle_path and not Path(ssl.ca_bundle_path).exists():
            logger.warning(f"CA bundle {ssl.ca_bundle_path} not found, falling back to certifi")

        return ssl

    def get_verify_path(self) -> str | bool:
        """
        Value for httpx's ``verify`` argument.

        Returns:
            False in insecure mode, else the custom bundle if it exists,
            else certifi's bundle
        """
        if self.insecure_ssl:
            return False
        if self.ca_bundle_path and Path(self.ca_bundle_path).exists():
            return self.ca_bundle_path
        return certifi.where()


@dataclass
class ProxyConfig:
    """Outbound proxies, keyed by URL scheme."""

    http_proxy: str | None = None
    https_proxy: str | None = None

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        proxy = cls(
            http_proxy=_first_env("HTTP_PROXY", "http_proxy"),
            https_proxy=_first_env("HTTPS_PROXY", "https_proxy"),
        )
        if proxy.is_configured:
            logger.info(f"Summarizer traffic goes through proxy {proxy.proxy_map()}")
        return proxy

    @property
    def is_configured(self) -> bool:
        return bool(self.http_proxy or self.https_proxy)

    def proxy_map(self) -> dict[str, str]:
        """Mount prefix to proxy URL, e.g. {"https://": "http://proxy:8080"}."""
        mapping = {"http://": self.http_proxy, "https://": self.https_proxy}
        return {prefix: url for prefix, url in mapping.items() if url}


@dataclass
class RetryConfig:
    """Exponential backoff for transient summarizer failures."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given 0-based attempt failed."""
        return min(self.base_delay * self.multiplier ** attempt, self.max_delay)


@dataclass
class SummarizerConfig:
    """OpenAI-compatible chat completion endpoint used for narratives."""

    base_url: str = DEFAULT_SUMMARIZER_URL
    endpoint: str = "/v1/chat/completions"
    api_key: str | None = None

    model: str = DEFAULT_SUMMARIZER_MODEL
    temperature: float = 0.5
    max_tokens: int = 500
    timeout: float = 60.0

    retry: RetryConfig = field(default_factory=lambda: RetryConfig(max_attempts=3, base_delay=2.0))

    @classmethod
    def from_env(cls) -> "SummarizerConfig":
        """
        Read the summarizer settings.

        Environment variables:
            OPENAI_API_KEY: Bearer credential (optional for local endpoints)
            SUMMARIZER_BASE_URL: Scheme and host of the endpoint
            SUMMARIZER_MODEL: Model name sent with each request
            SUMMARIZER_TIMEOUT: Request timeout in seconds
        """
        api_key = _first_env("OPENAI_API_KEY")
        if not api_key:
            logger.warning("OPENAI_API_KEY is not set; summarizer requests will be unauthenticated")

        return cls(
            base_url=_first_env("SUMMARIZER_BASE_URL") or DEFAULT_SUMMARIZER_URL,
            api_key=api_key,
            model=_first_env("SUMMARIZER_MODEL") or DEFAULT_SUMMARIZER_MODEL,
            timeout=float(_first_env("SUMMARIZER_TIMEOUT") or 60.0),
        )

    @property
    def url(self) -> str:
        """Full completion URL."""
        return f"{self.base_url.rstrip('/')}{self.endpoint}"


@dataclass
class StorageConfig:
    """Where tracks and generated reports are kept."""

    db_path: str = DEFAULT_DB_PATH

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(db_path=_first_env("TRACK_REPORT_DB") or DEFAULT_DB_PATH)


@dataclass
class AppConfig:
    """Process-wide settings assembled from the environment."""

    ssl: SSLConfig = field(default_factory=SSLConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            ssl=SSLConfig.from_env(),
            proxy=ProxyConfig.from_env(),
            summarizer=SummarizerConfig.from_env(),
            storage=StorageConfig.from_env(),
            log_level=_first_env("LOG_LEVEL") or "INFO",
        )

    def log_configuration(self) -> None:
        """Log the effective settings, without secrets."""
        tls = "disabled" if self.ssl.insecure_ssl else self.ssl.get_verify_path()
        logger.info(f"Summarizer: {self.summarizer.url} (model {self.summarizer.model})")
        logger.info(f"Summarizer key: {'set' if self.summarizer.api_key else 'not set'}")
        logger.info(f"TLS verification: {tls}")
        logger.info(f"Proxy: {self.proxy.proxy_map() or 'none'}")
        logger.info(f"Database: {self.storage.db_path}")


# Lazily built on first use
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create the process-wide config."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None
