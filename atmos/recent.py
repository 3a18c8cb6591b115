# File: atmos/recent.py

"""Recently searched cities, newest first. The list itself lives in browser local storage."""

from atmos.config_loader import get_setting

MAX_RECENT = int(get_setting('recent_searches', 'max_items', 4))
LOCATION_PREFIX = 'Loc:'


def add_to_recent(recent, city, max_items=MAX_RECENT):
    """Returns a new list with ``city`` (first letter capitalised) at the front.

    Case-insensitive duplicates are removed and the list is capped at
    ``max_items``. Blank names and coordinate placeholders leave the list unchanged.
    """
    recent = list(recent or [])
    city = str(city).strip() if city is not None else ''
    if not city or LOCATION_PREFIX in city:
        return recent
    city_title = city[:1].upper() + city[1:]
    updated = [city_title] + [c for c in recent if c.lower() != city.lower()]
    return updated[:max_items]


def clear_recent():
    return []
