# File: atmos/health_rules/activity.py

"""Lifestyle guidance (sports, cycling, ventilation, masks) derived from the AQI."""

import logging

log = logging.getLogger(__name__)

GOOD_MAX = 50
MODERATE_MAX = 100
SENSITIVE_MAX = 150

STATUS_OK = "ok"
STATUS_CAUTION = "caution"
STATUS_AVOID = "avoid"


def _card_status(card):
    # Mask card: "yes, wear it" is the alarming state, so colour follows the text.
    if card["inverse"]:
        if card["text"] == "Required":
            return STATUS_AVOID
        if card["text"] == "Recommended":
            return STATUS_CAUTION
        return STATUS_OK
    if not card["allowed"]:
        return STATUS_AVOID
    if card["warning"]:
        return STATUS_CAUTION
    return STATUS_OK


def get_activity_guidance(aqi_value):
    """Returns the four activity cards for an AQI value.

    Each card is a dict with 'label', 'icon', 'allowed', 'warning', 'text',
    'inverse' and 'status'. For the inverse (mask) card 'allowed' means
    "wear one". Missing or non-numeric AQI values are treated as 0.
    """
    try:
        aqi = float(aqi_value) if aqi_value is not None else 0.0
    except (TypeError, ValueError):
        log.warning(f"Non-numeric AQI for activity guidance: {aqi_value!r}. Using 0.")
        aqi = 0.0

    is_good = aqi <= GOOD_MAX
    is_moderate = GOOD_MAX < aqi <= MODERATE_MAX
    is_sensitive = MODERATE_MAX < aqi <= SENSITIVE_MAX
    is_unhealthy = aqi > SENSITIVE_MAX

    cards = [
        {
            "label": "Outdoor Sports",
            "icon": "🏃",
            "allowed": not is_unhealthy,
            "warning": is_sensitive,
            "text": "Avoid" if is_unhealthy else "Limit" if is_sensitive else "Enjoy",
            "inverse": False,
        },
        {
            "label": "Cycling",
            "icon": "🚲",
            "allowed": not is_unhealthy,
            "warning": is_sensitive,
            "text": "Avoid" if is_unhealthy else "Light" if is_sensitive else "Go for it",
            "inverse": False,
        },
        {
            "label": "Ventilation",
            "icon": "🪟",
            "allowed": is_good or is_moderate,
            "warning": is_moderate,
            "text": "Keep Closed" if (is_unhealthy or is_sensitive) else "Open Windows",
            "inverse": False,
        },
        {
            "label": "Mask Needed",
            "icon": "😷",
            "allowed": is_unhealthy or is_sensitive,
            "warning": is_moderate,
            "text": "Required" if is_unhealthy else "Recommended" if is_sensitive else "Not Needed",
            "inverse": True,
        },
    ]
    for card in cards:
        card["status"] = _card_status(card)
    return cards
