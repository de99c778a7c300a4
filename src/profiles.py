"""
Presence Profile Registry
=========================

Loading and lookup of breath-to-presence mapping profiles.

Each visual profile (kasina) maps breath amplitude to size through a
PresenceMappingProfile. Profiles come from built-in category presets and
may be overridden by JSON files in a profiles directory. The registry
loads everything once at construction and is read-only afterwards.

Classes:
    PresenceProfileRegistry: Profile loading and lookup

Functions:
    create_category_presets: Built-in mapping presets per category

Module: profiles
Version: 1.0.0
"""

import json
import logging
import os

from core.types import PresenceMappingProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "default"


# ============================================================================
# Built-in Presets
# ============================================================================

# Visual profile id -> preset category
PROFILE_CATEGORIES = {
    # Color kasinas
    "white": "color",
    "blue": "color",
    "red": "color",
    "yellow": "color",
    "custom": "color",

    # Elemental kasinas
    "water": "elemental",
    "air": "elemental",
    "fire": "elemental",
    "earth": "elemental",
    "space": "elemental",
    "light": "elemental",

    # Vajrayana kasinas
    "white_a_thigle": "vajrayana",
    "white_a_kasina": "vajrayana",
    "om_kasina": "vajrayana",
    "ah_kasina": "vajrayana",
    "hum_kasina": "vajrayana",
    "rainbow_kasina": "vajrayana",

    # Breath-driven kasina
    "breath": "special",
}


def create_category_presets():
    """
    Create the built-in mapping parameters for each profile category.

    Returns:
        Dictionary of category name -> profile parameters (without profile_id)
    """
    return {
        "color": {
            "min_size": 80.0,
            "max_size": 400.0,
            "size_multiplier_range": (0.5, 3.0),
            "immersion_threshold": 300.0,
            "max_immersion": 1200.0,
            "smoothing_factor": 0.8,
        },
        "elemental": {
            "min_size": 80.0,
            "max_size": 450.0,
            "size_multiplier_range": (0.5, 3.0),
            "immersion_threshold": 300.0,
            "max_immersion": 1200.0,
            "smoothing_factor": 0.8,
        },
        "vajrayana": {
            "min_size": 100.0,
            "max_size": 500.0,
            "size_multiplier_range": (0.5, 3.0),
            "immersion_threshold": 350.0,
            "max_immersion": 1500.0,
            "smoothing_factor": 0.85,
        },
        "special": {
            "min_size": 60.0,
            "max_size": 600.0,
            "size_multiplier_range": (0.5, 2.5),
            "immersion_threshold": 300.0,
            "max_immersion": 1500.0,
            "smoothing_factor": 0.7,  # Breath kasina follows the breath more closely
        },
    }


# ============================================================================
# Profile Registry
# ============================================================================

class PresenceProfileRegistry:
    """
    Read-only registry of presence mapping profiles.

    Features:
        - Built-in profiles for every known visual profile id
        - Optional JSON overrides, one file per profile id
        - Validation of every loaded profile
        - Fallback to the default profile for unknown ids

    Usage:
        registry = PresenceProfileRegistry(profiles_dir="/etc/kasina/profiles")

        profile = registry.get("blue")
        result = map_to_presence(profile, amplitude, previous)

    Override file format (profiles_dir/blue.json):
        {
            "profile_id": "blue",
            "min_size": 90,
            "max_size": 420,
            "size_multiplier_range": [0.5, 3.0],
            "immersion_threshold": 300,
            "max_immersion": 1200,
            "smoothing_factor": 0.75
        }
    """

    def __init__(self, profiles_dir=None):
        """
        Initialize and load all profiles.

        Args:
            profiles_dir: Optional directory of JSON override files

        Raises:
            ValueError: If an override file holds an invalid profile
        """
        self.profiles_dir = profiles_dir
        self._profiles = self._load_builtin()

        if profiles_dir is not None:
            self._profiles.update(self._load_overrides(profiles_dir))

        logger.info(f"[Profiles] Loaded {len(self._profiles)} presence profiles")

    def _load_builtin(self):
        presets = create_category_presets()
        profiles = {
            DEFAULT_PROFILE_ID: PresenceMappingProfile(
                profile_id=DEFAULT_PROFILE_ID, **presets["color"]
            ),
        }
        for profile_id, category in PROFILE_CATEGORIES.items():
            profiles[profile_id] = PresenceMappingProfile(
                profile_id=profile_id, **presets[category]
            )
        return profiles

    def _load_overrides(self, profiles_dir):
        try:
            files = sorted(os.listdir(profiles_dir))
        except OSError as e:
            logger.warning(f"[Profiles] Profiles directory '{profiles_dir}' not readable: {e}")
            return {}

        overrides = {}
        for filename in files:
            if not filename.endswith(".json"):
                continue

            name = filename[:-5]
            path = os.path.join(profiles_dir, filename)
            try:
                with open(path, "r") as f:
                    data = json.load(f)
                data.setdefault("profile_id", name)
                profile = PresenceMappingProfile.from_dict(data)
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Profile '{name}' could not be loaded from {path}: {e}")

            errors = profile.validate()
            if errors:
                raise ValueError(f"Profile '{name}' validation failed: {errors}")

            overrides[profile.profile_id] = profile

        return overrides

    def get(self, profile_id):
        """
        Look up a profile.

        Args:
            profile_id: Visual profile identifier (case-insensitive)

        Returns:
            PresenceMappingProfile; the default profile for unknown ids
        """
        key = (profile_id or "").lower()
        profile = self._profiles.get(key)
        if profile is None:
            logger.warning(f"[Profiles] Profile '{profile_id}' not found, using default")
            return self._profiles[DEFAULT_PROFILE_ID]
        return profile

    def __contains__(self, profile_id):
        return (profile_id or "").lower() in self._profiles

    def list_profiles(self):
        """List all available profile ids."""
        return sorted(self._profiles.keys())
