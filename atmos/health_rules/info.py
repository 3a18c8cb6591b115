# File: atmos/health_rules/info.py

"""
Defines the US EPA Air Quality Index (AQI) scale and provides related utilities.

This module contains the six AQI categories with their upper bounds, health
implications and display colors, and the lookup functions that classify a
numerical AQI value into its category.
"""

import logging
import numbers

import pandas as pd  # Used for the robust pd.isna check

from atmos.models import AqiLevel

log = logging.getLogger(__name__)


# --- AQI Definition ---
# A general-purpose description of the Air Quality Index for educational display.
AQI_DEFINITION = """
The Air Quality Index (AQI) is a scalar pollution severity score used to communicate how polluted the air currently is.
The higher the value, the greater the level of air pollution and the greater the health concern.
"""

# --- AQI Scale and Health Implications (US EPA) ---
# Ordered by upper bound; the last category is open-ended.
AQI_SCALE = [
    {"max": 50, "range": "0-50", "level": AqiLevel.GOOD, "color": "#34d399",
     "implications": "Air quality is satisfactory, and air pollution poses little or no risk."},
    {"max": 100, "range": "51-100", "level": AqiLevel.MODERATE, "color": "#fbbf24",
     "implications": "Air quality is acceptable. Unusually sensitive people should consider reducing prolonged outdoor exertion."},
    {"max": 150, "range": "101-150", "level": AqiLevel.UNHEALTHY_SENSITIVE, "color": "#fb923c",
     "implications": "Members of sensitive groups may experience health effects. The general public is less likely to be affected."},
    {"max": 200, "range": "151-200", "level": AqiLevel.UNHEALTHY, "color": "#f43f5e",
     "implications": "Some members of the general public may experience health effects; sensitive groups may experience more serious effects."},
    {"max": 300, "range": "201-300", "level": AqiLevel.VERY_UNHEALTHY, "color": "#a855f7",
     "implications": "Health alert: the risk of health effects is increased for everyone."},
    {"max": None, "range": "301+", "level": AqiLevel.HAZARDOUS, "color": "#9f1239",
     "implications": "Health warning of emergency conditions: everyone is more likely to be affected."},
]

UNKNOWN_COLOR = "#94a3b8"


def _is_valid_number(value):
    if isinstance(value, bool) or not isinstance(value, numbers.Number):
        return False
    return not pd.isna(value)


def get_aqi_level(aqi_value):
    """Classifies an AQI value into an AqiLevel.

    Thresholds are inclusive upper bounds (50, 100, 150, 200, 300); anything
    above 300 is Hazardous. None, NaN and non-numeric input give AqiLevel.UNKNOWN.
    """
    if not _is_valid_number(aqi_value):
        return AqiLevel.UNKNOWN
    for category in AQI_SCALE:
        if category["max"] is None or aqi_value <= category["max"]:
            return category["level"]
    return AqiLevel.HAZARDOUS


def get_aqi_info(aqi_value):
    """
    Finds the AQI category details for a given numerical AQI value.

    Args:
        aqi_value (int | float | None): The numerical AQI value to classify.

    Returns:
        dict | None: The matching AQI_SCALE entry ('range', 'level', 'color',
                     'implications'). Returns None for invalid inputs
                     (negative, non-numeric, NaN or None).
    """
    if not _is_valid_number(aqi_value) or aqi_value < 0:
        log.warning(f"Invalid AQI value received: {aqi_value}. Returning None.")
        return None
    level = get_aqi_level(aqi_value)
    for category in AQI_SCALE:
        if category["level"] == level:
            return category
    return None


def get_level_color(level):
    """Display color for an AqiLevel (or its string value)."""
    level = AqiLevel.parse(level)
    for category in AQI_SCALE:
        if category["level"] == level:
            return category["color"]
    return UNKNOWN_COLOR
