"""
Signal to Presence Mapping
==========================
Pure mapping from breath amplitude to renderer parameters.

Raw breath amplitude from a belt sensor or microphone is too noisy to drive
a visual size directly. The mapper smooths it with a fixed exponential
moving average, interpolates a size between the profile bounds, caps it at
a ceiling shared by all profiles, and derives an immersion level used to
blend the background.

The functions hold no state: the caller keeps the smoothed amplitude from
the previous result and passes it back in with the next sample.

Functions:
    smooth_amplitude: Sanitize and smooth one amplitude sample
    map_to_presence: Amplitude -> PresenceResult
    map_sample: BreathSample -> PresenceResult

Usage:
    previous = 0.0
    for sample in sensor:
        result = map_sample(profile, sample, previous, size_multiplier)
        previous = result.smoothed_amplitude
        renderer.update(result.size, result.immersion_level)

Module: presence
Version: 1.0.0
"""

import math

from core.constants import BACKGROUND_INTENSITY_FLOOR, HARD_SIZE_CEILING
from core.types import PresenceResult
from utils.validation import clamp, clamp01


def smooth_amplitude(raw_amplitude, previous_smoothed_amplitude, smoothing_factor):
    """
    Sanitize and smooth one amplitude sample.

    The previous value is clamped to [0, 1]. A NaN sample is replaced by the
    previous value, so it never reaches the renderer; other samples are
    clamped to [0, 1].

    Returns:
        previous * k + raw * (1 - k), with k = smoothing_factor
    """
    previous = clamp01(previous_smoothed_amplitude)

    if math.isnan(raw_amplitude):
        raw = previous
    else:
        raw = clamp01(raw_amplitude)

    k = smoothing_factor
    return previous * k + raw * (1.0 - k)


def map_to_presence(profile, raw_amplitude, previous_smoothed_amplitude, size_multiplier=1.0):
    """
    Map a breath amplitude to presence size and immersion level.

    Args:
        profile: PresenceMappingProfile for the active visual profile
        raw_amplitude: Latest amplitude, nominally in [0, 1]; NaN tolerated
        previous_smoothed_amplitude: smoothed_amplitude of the previous result
        size_multiplier: User size control, clamped to the profile's range

    Returns:
        PresenceResult with size, immersion_level, smoothed_amplitude and
        background_intensity
    """
    smoothed = smooth_amplitude(
        raw_amplitude, previous_smoothed_amplitude, profile.smoothing_factor
    )

    low, high = profile.size_multiplier_range
    if math.isnan(size_multiplier):
        size_multiplier = 1.0
    multiplier = clamp(size_multiplier, low, high)

    scaled_max = max(profile.min_size, profile.max_size * multiplier)
    size = profile.min_size + smoothed * (scaled_max - profile.min_size)
    size = min(size, HARD_SIZE_CEILING)

    immersion_level = clamp01(
        (size - profile.immersion_threshold)
        / (profile.max_immersion - profile.immersion_threshold)
    )

    background_intensity = clamp(smoothed * 0.8 + 0.2, BACKGROUND_INTENSITY_FLOOR, 1.0)

    return PresenceResult(
        size=size,
        immersion_level=immersion_level,
        smoothed_amplitude=smoothed,
        background_intensity=background_intensity,
    )


def map_sample(profile, sample, previous_smoothed_amplitude, size_multiplier=1.0):
    """Map a BreathSample; see map_to_presence()."""
    return map_to_presence(
        profile, sample.amplitude, previous_smoothed_amplitude, size_multiplier
    )
