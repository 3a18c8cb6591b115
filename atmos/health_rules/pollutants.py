# File: atmos/health_rules/pollutants.py

"""
Classifies individual pollutant readings for the pollutant breakdown chart.

Each pollutant has a "safe" and a "moderate" upper limit, simplified from
typical EPA/WHO visual guidelines. A reading at or below the safe limit is
Good, at or below the moderate limit is Moderate, anything higher is
Unhealthy. Pollutant names are matched loosely ("PM2.5", "pm25", "Ozone").
"""

import logging

log = logging.getLogger(__name__)

# --- Pollutant Thresholds ---
# Checked in order; the first matching alias wins, so CO must come last
# (several names contain the letters "CO").
POLLUTANT_THRESHOLDS = [
    {"key": "pm25", "aliases": ("PM2.5", "PM25"), "safe": 12, "moderate": 35.4,
     "description": "Fine particles (<2.5µm) that penetrate deep into lungs and bloodstream."},
    {"key": "pm10", "aliases": ("PM10",), "safe": 54, "moderate": 154,
     "description": "Inhalable particles (<10µm) that irritate eyes, nose, and throat."},
    {"key": "o3", "aliases": ("O3", "OZONE"), "safe": 54, "moderate": 85,  # ppb
     "description": "Ground-level ozone; a respiratory irritant formed by sunlight."},
    {"key": "no2", "aliases": ("NO2",), "safe": 53, "moderate": 100,  # ppb
     "description": "Nitrogen Dioxide; gas from vehicles that inflames lung lining."},
    {"key": "so2", "aliases": ("SO2",), "safe": 35, "moderate": 75,  # ppb
     "description": "Sulfur Dioxide; from burning fossil fuels, harms respiratory system."},
    {"key": "co", "aliases": ("CO",), "safe": 4.4, "moderate": 9.4,  # ppm
     "description": "Carbon Monoxide; odorless gas from combustion that reduces oxygen delivery."},
]

DEFAULT_SAFE = 20
DEFAULT_MODERATE = 50
DEFAULT_DESCRIPTION = "Concentration of this specific air pollutant."

# CO readings this large are almost certainly µg/m³ rather than ppm.
CO_MICROGRAM_CUTOFF = 100
CO_MICROGRAM_LIMITS = (4000, 10000)

STATUS_COLORS = {
    "Good": "#34d399",
    "Moderate": "#fbbf24",
    "Unhealthy": "#f43f5e",
}


def _match_pollutant(name):
    upper_name = (name or "").upper()
    for entry in POLLUTANT_THRESHOLDS:
        if any(alias in upper_name for alias in entry["aliases"]):
            return entry
    return None


def get_pollutant_status(name, value):
    """Classifies a pollutant reading.

    Args:
        name (str): pollutant name as reported (e.g. 'PM2.5', 'Ozone').
        value (int | float): the reading.

    Returns:
        dict: {'level': 'Good'|'Moderate'|'Unhealthy', 'color': str, 'safe': float}.
              Non-numeric readings are classified as Unhealthy so they stand out.
    """
    entry = _match_pollutant(name)
    safe, moderate = (entry["safe"], entry["moderate"]) if entry else (DEFAULT_SAFE, DEFAULT_MODERATE)

    try:
        reading = float(value)
    except (TypeError, ValueError):
        log.warning(f"Could not parse value for pollutant '{name}': {value!r}")
        return {"level": "Unhealthy", "color": STATUS_COLORS["Unhealthy"], "safe": safe}

    if entry and entry["key"] == "co" and reading > CO_MICROGRAM_CUTOFF:
        safe, moderate = CO_MICROGRAM_LIMITS

    if reading <= safe:
        level = "Good"
    elif reading <= moderate:
        level = "Moderate"
    else:
        level = "Unhealthy"
    return {"level": level, "color": STATUS_COLORS[level], "safe": safe}


def get_pollutant_description(name, provided_description=None):
    """Returns the AI-provided description if any, else a built-in one-liner."""
    if provided_description:
        return provided_description
    entry = _match_pollutant(name)
    return entry["description"] if entry else DEFAULT_DESCRIPTION
