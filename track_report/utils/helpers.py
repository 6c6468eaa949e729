"""
Helper functions for the Track Report engine.

Geo math (haversine distance, forward azimuth), display formatting and
config/logging setup shared by every analyzer.
"""

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml

if TYPE_CHECKING:
    from ..models import LocationPoint


# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000

# Top-level config.yaml sections consumed by the engine and pipeline
CONFIG_SECTIONS = ("confidence", "anomalies", "timeline", "summarizer")

# Chatty third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def default_config_path() -> Path:
    """config.yaml at the repository root, next to the package."""
    return Path(__file__).resolve().parent.parent.parent / "config.yaml"


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load engine and summarizer settings from YAML.

    Args:
        config_path: Config file; the repository's config.yaml if None

    Returns:
        Configuration dictionary (empty sections become {})

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not hold a mapping
    """
    path = Path(config_path) if config_path is not None else default_config_path()

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    for section in CONFIG_SECTIONS:
        if config.get(section) is None:
            config[section] = {}

    return config


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    log_format: str | None = None
) -> structlog.BoundLogger:
    """
    Wire stdlib logging and structlog for the CLI.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Also write records to this file
        log_format: stdlib format string override

    Returns:
        structlog logger bound to "track_report"
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=log_format or "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        handlers=handlers,
    )

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("track_report")


# =============================================================================
# Geo math
# =============================================================================

def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push a marginally past 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def calculate_bearing(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate initial bearing (forward azimuth) from point 1 to point 2.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Bearing in degrees within (-180, 180], 0 is North.
        Identical points return 0.0.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (
        math.cos(phi1) * math.sin(phi2) -
        math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    )

    bearing = math.degrees(math.atan2(x, y))

    # atan2 can yield -180 exactly; fold it onto +180
    if bearing == -180.0:
        bearing = 180.0
    # Avoid reporting -0.0 for due north / identical points
    return bearing + 0.0


def point_distance(a: "LocationPoint", b: "LocationPoint") -> float:
    """Haversine distance in meters between two location points."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def point_bearing(a: "LocationPoint", b: "LocationPoint") -> float:
    """Initial bearing in degrees from point a to point b."""
    return calculate_bearing(a.latitude, a.longitude, b.latitude, b.longitude)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Signed elapsed seconds from earlier to later."""
    return (later - earlier).total_seconds()


# =============================================================================
# Display formatting
# =============================================================================

def format_clock_time(dt: datetime) -> str:
    """
    Format a timestamp as a zero-padded 24h UTC clock time.

    Naive datetimes are taken to be UTC already.

    Returns:
        Time string (e.g., "09:05")
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%H:%M")


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds as "{H}h {M}m {S}s".

    All three components are always present and never zero-padded.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration (e.g., "1h 2m 5s")
    """
    hours = math.floor(seconds / 3600)
    minutes = math.floor((seconds % 3600) / 60)
    secs = math.floor(seconds % 60)
    return f"{hours}h {minutes}m {secs}s"


def format_distance_km(distance_km: float) -> str:
    """
    Format a distance given in kilometers.

    Args:
        distance_km: Distance in kilometers

    Returns:
        "N m" below one kilometer, otherwise "K km M m" (e.g., "1 km 234 m")
    """
    if distance_km < 1:
        return f"{round_half_up(distance_km * 1000)} m"

    km_part = math.floor(distance_km)
    m_part = round_half_up((distance_km - km_part) * 1000)
    return f"{km_part} km {m_part} m"
