"""
Guided Delivery Configuration
=============================

This module handles configuration loading for the navigation core.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. guided_delivery.yaml / config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    GUIDED_DELIVERY_ARRIVAL_THRESHOLD       -> navigation.arrival_threshold_meters
    GUIDED_DELIVERY_CONFIRMATION_MS         -> navigation.confirmation_window_millis
    GUIDED_DELIVERY_FLOOR_HEIGHT            -> navigation.floor_height_meters
    GUIDED_DELIVERY_PROVIDER_TIMEOUT        -> positioning.provider_init_timeout_seconds
    GUIDED_DELIVERY_MIN_SAMPLE_INTERVAL_MS  -> positioning.min_sample_interval_millis
    GUIDED_DELIVERY_LOG_LEVEL               -> logging.level

Unlike a module-level settings singleton, nothing is loaded on import.
Callers load settings once and hand the relevant section to each
navigation session.

Example:
    from guided_delivery.config import load_config, setup_logging

    settings = load_config()
    setup_logging(settings)

    print(settings.navigation.arrival_threshold_meters)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class NavigationConfig(BaseModel):
    """Arrival detection and indicator presentation configuration."""

    arrival_threshold_meters: float = Field(
        default=3.0,
        gt=0,
        description="Distance at or below which arrival may be confirmed",
    )
    confirmation_window_millis: int = Field(
        default=2000,
        ge=0,
        description="Continuous dwell time inside the threshold before arrival",
    )
    floor_height_meters: float = Field(
        default=4.0,
        gt=0,
        description="Approximate floor height used when altitude is missing",
    )
    min_scale: float = Field(
        default=0.3,
        gt=0,
        description="Indicator scale at or beyond far_distance_meters",
    )
    max_scale: float = Field(
        default=1.5,
        gt=0,
        description="Indicator scale at or within near_distance_meters",
    )
    near_distance_meters: float = Field(
        default=1.0,
        ge=0,
        description="Distance at which the indicator reaches max_scale",
    )
    far_distance_meters: float = Field(
        default=50.0,
        gt=0,
        description="Distance at which the indicator reaches min_scale",
    )
    aligned_tolerance_degrees: float = Field(
        default=15.0,
        ge=0,
        le=180,
        description="Max |rotation| counted as facing the target",
    )
    max_tilt_degrees: float = Field(
        default=45.0,
        gt=0,
        le=45,
        description="Clamp for the indicator's vertical tilt (at most 45)",
    )
    poor_accuracy_meters: float = Field(
        default=10.0,
        gt=0,
        description="Accuracy above which tiny distances are distrusted",
    )
    implausible_distance_meters: float = Field(
        default=0.1,
        ge=0,
        description="Distance below which poor-accuracy samples are rejected",
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> "NavigationConfig":
        if self.min_scale > self.max_scale:
            raise ValueError("min_scale must not exceed max_scale")
        if self.near_distance_meters >= self.far_distance_meters:
            raise ValueError("near_distance_meters must be below far_distance_meters")
        return self


class PositioningConfig(BaseModel):
    """Position provider configuration."""

    provider_init_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Time allowed for a provider to start before falling back",
    )
    min_sample_interval_millis: int = Field(
        default=100,
        ge=0,
        description="Samples closer together than this are dropped (rate bound)",
    )
    log_every_n_samples: int = Field(
        default=10,
        ge=1,
        description="Log stream status every N emitted samples",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the navigation core.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    positioning: PositioningConfig = Field(default_factory=PositioningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to a YAML file. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("guided_delivery.yaml"),
            Path("config.yaml"),
            Path("config.yml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Navigation settings
    if env_threshold := os.environ.get("GUIDED_DELIVERY_ARRIVAL_THRESHOLD"):
        config_data.setdefault("navigation", {})["arrival_threshold_meters"] = float(env_threshold)
    if env_window := os.environ.get("GUIDED_DELIVERY_CONFIRMATION_MS"):
        config_data.setdefault("navigation", {})["confirmation_window_millis"] = int(env_window)
    if env_floor := os.environ.get("GUIDED_DELIVERY_FLOOR_HEIGHT"):
        config_data.setdefault("navigation", {})["floor_height_meters"] = float(env_floor)

    # Positioning settings
    if env_timeout := os.environ.get("GUIDED_DELIVERY_PROVIDER_TIMEOUT"):
        config_data.setdefault("positioning", {})["provider_init_timeout_seconds"] = float(env_timeout)
    if env_interval := os.environ.get("GUIDED_DELIVERY_MIN_SAMPLE_INTERVAL_MS"):
        config_data.setdefault("positioning", {})["min_sample_interval_millis"] = int(env_interval)

    # Logging settings
    if env_log := os.environ.get("GUIDED_DELIVERY_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
