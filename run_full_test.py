# File: run_full_test.py
"""
Runs an end-to-end check of the Atmos backend for a city or a coordinate pair.
Fetches live data through Gemini and prints every dashboard section as text.
Hides INFO level console logs for cleaner output.

Usage:
    python run_full_test.py "New Delhi"
    python run_full_test.py --lat 28.61 --lon 77.21
"""

import argparse
import logging
import sys

from atmos.api_integration.gemini_client import fetch_aqi_for_city, fetch_aqi_for_location, send_chat_message
from atmos.config_loader import CONFIG
from atmos.exceptions import AqiFetchError
from atmos.health_rules.activity import get_activity_guidance
from atmos.health_rules.info import AQI_DEFINITION, AQI_SCALE, get_aqi_info
from atmos.health_rules.pollutants import get_pollutant_status

log = logging.getLogger(__name__)


# --- Console Log Level Override ---
def suppress_console_info_logs():
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.WARNING)
            return
    print("WARNING: Could not find console handler.")


# --- Main Display Function ---
def display_all_sections(data, ask=None):
    """Prints the dashboard sections for an AqiData object."""
    print(f"\n{'='*25} Report for: {data.city.upper()} {'='*25}")

    print("\n--- [ Current AQI ] ---")
    aqi_info = get_aqi_info(data.aqi)
    color = aqi_info['color'] if aqi_info else '#808080'
    print(f"  >>> AQI: {data.aqi} ({data.level.value}) [Color: {color}] <<<")
    print(f"  Dominant pollutant: {data.dominant_pollutant}")
    print(f"  Last updated: {data.last_updated or 'N/A'}")

    print("\n--- [ Weather ] ---")
    print(f"  Temperature: {data.temperature if data.temperature is not None else '-'}°C")
    print(f"  Humidity:    {data.humidity if data.humidity is not None else '-'}%")
    print(f"  UV Index:    {data.uv_index if data.uv_index is not None else '-'}")

    print("\n--- [ Activity Guide ] ---")
    for card in get_activity_guidance(data.aqi):
        print(f"  {card['icon']} {card['label']:<14} {card['text']:<14} [{card['status']}]")

    print("\n--- [ Pollutants ] ---")
    if data.pollutants:
        print("  Name   | Value      | Status")
        print("  -------|------------|---------")
        for p in data.pollutants:
            status = get_pollutant_status(p.name, p.value)
            print(f"  {p.name:<6} | {p.value:<10} | {status['level']}")
    else:
        print("  No pollutant breakdown available.")

    print("\n--- [ Health Advice ] ---")
    print(f"  {data.health_advice}")
    for url in data.source_urls:
        print(f"    - {url}")

    print("\n--- [ Understanding AQI ] ---")
    print(f"  {AQI_DEFINITION.strip()}")
    for category in AQI_SCALE:
        print(f"    - {category['level'].value} ({category['range']}): {category['implications']}")

    if ask:
        print("\n--- [ Atmos AI ] ---")
        print(f"  Q: {ask}")
        print(f"  A: {send_chat_message(ask, [], data)}")

    print(f"\n{'='*25} END REPORT FOR: {data.city.upper()} {'='*25}\n")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Print an Atmos air-quality report.")
    parser.add_argument('city', nargs='?', help="City to look up")
    parser.add_argument('--lat', type=float, help="Latitude (use with --lon)")
    parser.add_argument('--lon', type=float, help="Longitude (use with --lat)")
    parser.add_argument('--ask', help="Optional question for the assistant")
    args = parser.parse_args(argv)
    if not args.city and (args.lat is None or args.lon is None):
        parser.error("give a city or both --lat and --lon")
    return args


# --- Main Execution Logic ---
if __name__ == "__main__":
    args = parse_args()
    suppress_console_info_logs()
    log.info(f"Starting report with model {CONFIG.get('gemini', {}).get('model')}")
    try:
        if args.city:
            result = fetch_aqi_for_city(args.city)
        else:
            result = fetch_aqi_for_location(args.lat, args.lon)
    except AqiFetchError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    display_all_sections(result, ask=args.ask)
