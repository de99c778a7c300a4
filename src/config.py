"""
Configuration Module
====================
Dict-based configuration loading for the kasina session core.

Functions:
    default_app_config: Built-in defaults
    load_app_config: Load session tunables from settings.json
    validate_config: Basic configuration validation
    configure_logging: Attach a basic log handler for hosts

Module: config
Version: 1.0.0
"""

import json
import logging

from core.constants import (
    CHECKPOINT_INTERVAL_SEC,
    DRIFT_TOLERANCE_SEC,
    EMERGENCY_FRESHNESS_WINDOW_MS,
    FRESHNESS_WINDOW_MS,
    MINIMUM_SESSION_SEC,
    RETRY_QUEUE_MAX,
    STALL_THRESHOLD_MS,
)
from utils.validation import validate_range

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def default_app_config():
    """
    Build the default configuration.

    Returns:
        Dictionary with:
            - checkpoint_interval_sec: Seconds between checkpoints
            - freshness_window_ms: Max age of a recoverable checkpoint
            - emergency_freshness_window_ms: Max age of a recoverable
              emergency checkpoint
            - minimum_session_sec: Shortest submitted session
            - retry_queue_max: Failed records kept for retry
            - drift_tolerance_sec: Tick disagreement reported as drift
            - stall_threshold_ms: Tick silence that triggers recomputation
            - profiles_dir: Directory of profile overrides, or None
            - store_path: Path of the JSON key-value store, or None
    """
    return {
        'checkpoint_interval_sec': CHECKPOINT_INTERVAL_SEC,
        'freshness_window_ms': FRESHNESS_WINDOW_MS,
        'emergency_freshness_window_ms': EMERGENCY_FRESHNESS_WINDOW_MS,
        'minimum_session_sec': MINIMUM_SESSION_SEC,
        'retry_queue_max': RETRY_QUEUE_MAX,
        'drift_tolerance_sec': DRIFT_TOLERANCE_SEC,
        'stall_threshold_ms': STALL_THRESHOLD_MS,
        'profiles_dir': None,
        'store_path': None,
    }


# settings.json key -> config key
_SETTINGS_KEYS = {
    'checkpointIntervalSec': 'checkpoint_interval_sec',
    'freshnessWindowSec': 'freshness_window_ms',
    'emergencyFreshnessWindowSec': 'emergency_freshness_window_ms',
    'minimumSessionSec': 'minimum_session_sec',
    'retryQueueMax': 'retry_queue_max',
    'driftToleranceSec': 'drift_tolerance_sec',
    'stallThresholdSec': 'stall_threshold_ms',
    'profilesDir': 'profiles_dir',
    'storePath': 'store_path',
}

# Settings given in seconds but stored in milliseconds
_SECONDS_TO_MS = ('freshness_window_ms', 'emergency_freshness_window_ms', 'stall_threshold_ms')


def load_app_config(path="settings.json"):
    """
    Load session configuration from settings.json.

    Unknown keys are ignored; missing keys keep their defaults.

    Args:
        path: Path to settings.json file (default: "settings.json")

    Returns:
        Configuration dictionary (see default_app_config)

    Raises:
        OSError: If settings.json doesn't exist
        ValueError: If the JSON is invalid or the configuration fails validation

    Example settings.json:
        {
            "checkpointIntervalSec": 30,
            "freshnessWindowSec": 120,
            "retryQueueMax": 10,
            "storePath": "/var/lib/kasina/store.json"
        }
    """
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}")
    except OSError as e:
        raise OSError(f"Could not load settings from {path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Settings in {path} must be a JSON object")

    config = default_app_config()
    for settings_key, config_key in _SETTINGS_KEYS.items():
        if settings_key not in data:
            continue
        value = data[settings_key]
        if config_key in _SECONDS_TO_MS and isinstance(value, (int, float)):
            value = int(value * 1000)
        config[config_key] = value

    errors = validate_config(config)
    if errors:
        raise ValueError(f"Invalid settings in {path}: {errors}")

    return config


# Inclusive bounds for each numeric setting
_RANGES = {
    'checkpoint_interval_sec': (1, 3600),
    'freshness_window_ms': (1000, 86_400_000),
    'emergency_freshness_window_ms': (1000, 86_400_000),
    'minimum_session_sec': (0, 86_400),
    'retry_queue_max': (1, 1000),
    'drift_tolerance_sec': (0, 3600),
    'stall_threshold_ms': (1000, 3_600_000),
}


def validate_config(config):
    """
    Validate configuration dictionary.

    Args:
        config: Configuration dictionary to validate

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    for key, (low, high) in _RANGES.items():
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"{key} must be an integer, got {value!r}")
            continue
        try:
            validate_range(value, low, high, key)
        except ValueError as e:
            errors.append(str(e))

    freshness = config.get('freshness_window_ms')
    emergency = config.get('emergency_freshness_window_ms')
    if isinstance(freshness, int) and isinstance(emergency, int) and emergency < freshness:
        errors.append("emergency_freshness_window_ms must be >= freshness_window_ms")

    for key in ('profiles_dir', 'store_path'):
        value = config.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a path string or null, got {value!r}")

    return errors


def configure_logging(level=logging.INFO):
    """Attach a basic stream handler to the root logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
