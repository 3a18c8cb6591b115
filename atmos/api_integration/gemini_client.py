# File: atmos/api_integration/gemini_client.py

"""
Handles interactions with the Google Gemini generative-AI API.

Gemini is the single data source of the dashboard: with the Google Search tool
it looks up the real-time AQI, pollutant breakdown and weather for a city or a
coordinate pair, it proposes city names for autocomplete, and it powers the
"Atmos" chat assistant.

Model replies are free text that should contain JSON; this module strips
Markdown fences, parses the payload and normalizes it into AqiData with sane
defaults. City lookups retry once without the search tool (asking for
estimated values) when the grounded call fails, and successful grounded
results are cached for the configured TTL.

Requires a GEMINI_API_KEY environment variable (loaded from .env).
"""

import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from functools import lru_cache
from urllib.parse import urlparse

import httpx
from cachetools import LRUCache
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from atmos.cache import get_cached_data, set_cached_data
from atmos.config_loader import get_setting
from atmos.exceptions import APIError, APIKeyError, APINotFoundError, APITimeoutError, AqiFetchError
from atmos.health_rules.info import get_aqi_level
from atmos.models import AqiData, CitySuggestion, Pollutant

log = logging.getLogger(__name__)

SERVICE_NAME = "Gemini"
MODEL_ID = get_setting('gemini', 'model', 'gemini-2.5-flash')
MAX_SOURCES = int(get_setting('gemini', 'max_sources', 5))
MIN_SUGGESTION_QUERY_LENGTH = int(get_setting('autocomplete', 'min_query_length', 2))
SUGGESTION_CACHE_SIZE = int(get_setting('autocomplete', 'suggestion_cache_size', 256))
TIMEOUT_STATUS_CODES = (408, 504)

NO_ADVICE = "No advice available."
CHAT_EMPTY_REPLY = "I'm having trouble thinking right now."
CHAT_ERROR_REPLY = "Sorry, I am unable to connect to the AI right now."
WELCOME_MESSAGE_ID = "welcome"

AQI_JSON_FORMAT = """
    {
      "city": "string (Title Case)",
      "aqi": number,
      "dominantPollutant": "string",
      "temperature": number,
      "humidity": number,
      "uvIndex": number,
      "pollutants": [
        { "name": "string", "value": number, "unit": "µg/m³", "description": "string" }
      ],
      "healthAdvice": "string"
    }
"""

FALLBACK_PROMPT_SUFFIX = " \n(Estimate values based on known patterns if real-time data is unavailable)."

CHAT_PERSONA = ("You are Atmos, an expert AI assistant for Air Quality and Health. "
                "Keep answers concise, friendly, and actionable.")

_suggestion_cache = LRUCache(maxsize=SUGGESTION_CACHE_SIZE)
_suggestion_lock = threading.Lock()


# --- Client ---

@lru_cache(maxsize=1)
def _get_client():
    """Creates the Gemini client once. Raises APIKeyError when no key is configured."""
    api_key = os.getenv('GEMINI_API_KEY') or os.getenv('API_KEY')
    if not api_key:
        msg = "GEMINI_API_KEY not found. Please set it in .env or environment variables."
        log.error(msg)
        raise APIKeyError(msg, service=SERVICE_NAME)
    return genai.Client(api_key=api_key)


def _generate(contents, config=None):
    """Runs one generate_content call, translating SDK errors into Atmos exceptions."""
    client = _get_client()
    try:
        return client.models.generate_content(model=MODEL_ID, contents=contents, config=config)
    except (httpx.TimeoutException, TimeoutError) as timeout_err:
        log.error(f"Gemini request timed out: {timeout_err}")
        raise APITimeoutError(f"Gemini request timed out: {timeout_err}", service=SERVICE_NAME) from timeout_err
    except genai_errors.APIError as api_err:
        status_code = getattr(api_err, 'code', None)
        detail = getattr(api_err, 'message', None) or str(api_err)
        log.error(f"Gemini API error {status_code}: {detail}")
        if status_code in (401, 403):
            raise APIKeyError(f"Gemini rejected the API key: {detail}", status_code=status_code,
                              service=SERVICE_NAME) from api_err
        if status_code == 404:
            raise APINotFoundError(f"Gemini model '{MODEL_ID}' not found: {detail}",
                                   service=SERVICE_NAME) from api_err
        if status_code in TIMEOUT_STATUS_CODES:
            raise APITimeoutError(f"Gemini request timed out: {detail}", status_code=status_code,
                                  service=SERVICE_NAME) from api_err
        raise APIError(f"Gemini request failed: {detail}", status_code=status_code,
                       service=SERVICE_NAME) from api_err


# --- Response Parsing Helpers ---

def clean_json_string(text):
    """Removes Markdown ```json fences and surrounding whitespace."""
    return re.sub(r'```json\s*|\s*```', '', text or '').strip()


def extract_json(text):
    """Parses the JSON payload of a model reply.

    Accepts bare JSON, fenced JSON, or JSON embedded in prose (the first
    object/array span is tried last).

    Raises:
        ValueError: If no JSON can be decoded.
    """
    cleaned = clean_json_string(text)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    match = re.search(r'(\{.*\}|\[.*\])', cleaned, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1))
        except ValueError as e:
            raise ValueError(f"Could not decode JSON from model reply: {e}. Reply snippet: {cleaned[:200]}") from e
    raise ValueError(f"Model reply contained no JSON. Reply snippet: {cleaned[:200]}")


def extract_source_urls(response, limit=MAX_SOURCES):
    """Collects grounding source URLs of the first candidate, one per hostname."""
    candidates = getattr(response, 'candidates', None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], 'grounding_metadata', None)
    chunks = getattr(metadata, 'grounding_chunks', None) or []

    unique_urls = []
    seen_hosts = set()
    for chunk in chunks:
        web = getattr(chunk, 'web', None)
        url = getattr(web, 'uri', None)
        if not url:
            continue
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            hostname = None
        if not hostname:
            log.debug(f"Skipping invalid grounding URL: {url}")
            continue
        hostname = re.sub(r'^www\.', '', hostname)
        if hostname not in seen_hosts:
            seen_hosts.add(hostname)
            unique_urls.append(url)
    return unique_urls[:limit]


def _to_number(value):
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() else number


def _clean_text(value):
    """Model fields may come back as numbers or null; returns stripped text or None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value).strip() or None


def _capitalize_first(text):
    return text[:1].upper() + text[1:]


def _utc_now_iso():
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def normalize_aqi_payload(raw, fallback_city, source_urls=None):
    """Turns the parsed model JSON into AqiData, filling defaults for missing fields.

    Args:
        raw (dict): parsed model reply.
        fallback_city (str): used when the reply has no city name.
        source_urls (list[str] | None): grounding sources to attach.

    Raises:
        ValueError: If ``raw`` is not a JSON object.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object for AQI data, got {type(raw).__name__}.")

    aqi = _to_number(raw.get('aqi')) or 0
    pollutants = []
    for item in raw.get('pollutants') or []:
        if not isinstance(item, dict) or not item.get('name'):
            log.debug(f"Dropping malformed pollutant entry: {item!r}")
            continue
        pollutant = Pollutant.from_dict(item)
        pollutant.value = _to_number(pollutant.value) or 0
        pollutants.append(pollutant)

    return AqiData(
        city=_clean_text(raw.get('city')) or fallback_city,
        aqi=aqi,
        level=get_aqi_level(aqi),
        dominant_pollutant=_clean_text(raw.get('dominantPollutant')) or "Unknown",
        pollutants=pollutants,
        temperature=_to_number(raw.get('temperature')),
        humidity=_to_number(raw.get('humidity')),
        uv_index=_to_number(raw.get('uvIndex')),
        health_advice=_clean_text(raw.get('healthAdvice')) or NO_ADVICE,
        last_updated=_utc_now_iso(),
        source_urls=list(source_urls or []),
    )


# --- Prompts ---

def _city_prompt(city):
    return f"""
    Find the real-time Air Quality Index (AQI) for "{city}".
    I need the specific numeric AQI value, the dominant pollutant, and weather details (temperature, humidity, UV index).
    Also provide a health advice summary based on the AQI.
    Estimate a breakdown of pollutants (PM2.5, PM10, NO2, SO2, CO, O3) with values.
    Add a short, 1-sentence description for each pollutant explaining what it is.

    IMPORTANT:
    1. The "city" field in response MUST be the official, properly capitalized name of the city (e.g., if I search "begusarai", return "Begusarai").
    2. Provide at least 3 distinct source URLs.

    Return the data in this strictly valid JSON format:
    {AQI_JSON_FORMAT}
    """


def _location_prompt(lat, lon):
    return f"""
    Identify the city or area at Latitude: {lat}, Longitude: {lon}.
    Then, find the current Air Quality Index (AQI) and weather for that location.

    Return the data in this strictly valid JSON format:
    {AQI_JSON_FORMAT}
    """


def build_system_instruction(aqi_context=None):
    """Chat persona plus, when available, the currently displayed city's data."""
    instruction = CHAT_PERSONA
    if aqi_context is not None:
        pollutant_summary = ', '.join(f"{p.name}: {p.value}" for p in aqi_context.pollutants)
        instruction += f"""
        Current Context:
        City: {aqi_context.city}
        AQI: {aqi_context.aqi}
        Level: {aqi_context.level.value}
        Pollutants: {pollutant_summary}
        Answer questions specific to this city's data if asked.
        """
    return instruction


def _search_config():
    # The search tool cannot be combined with a JSON response MIME type.
    return types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())])


def _json_config():
    return types.GenerateContentConfig(response_mime_type='application/json')


# --- Public API ---

def fetch_aqi_for_city(city):
    """Fetches AQI data for a city, using the cache when possible.

    The search-grounded result is cached under ``aqi_<city lowercased>``. If
    that call fails, one fallback call without tools is made; its (estimated)
    result is returned uncached and without sources.

    Raises:
        ValueError: If ``city`` is blank.
        AqiFetchError: If both attempts fail.
    """
    city = (city or '').strip()
    if not city:
        raise ValueError("City name is required.")

    cache_key = f"aqi_{city.lower()}"
    cached = get_cached_data(cache_key)
    if cached:
        log.info(f"[Cache Hit] Returning data for {city}")
        try:
            return AqiData.from_dict(cached)
        except (KeyError, TypeError, ValueError) as e:
            log.warning(f"Ignoring unreadable cached entry for {city}: {e}")

    prompt = _city_prompt(city)
    try:
        log.info(f"Requesting search-grounded AQI from Gemini for '{city}'")
        response = _generate(prompt, config=_search_config())
        raw = extract_json(response.text or "{}")
        result = normalize_aqi_payload(raw, fallback_city=_capitalize_first(city),
                                       source_urls=extract_source_urls(response))
        set_cached_data(cache_key, result.to_dict())
        return result
    except Exception as e:
        log.error(f"Gemini API Error (Search) for '{city}': {e}", exc_info=True)

    try:
        log.info("Attempting fallback without search tool...")
        fallback_response = _generate(prompt + FALLBACK_PROMPT_SUFFIX, config=_json_config())
        raw = extract_json(fallback_response.text or "{}")
        return normalize_aqi_payload(raw, fallback_city=city, source_urls=[])
    except Exception as fallback_error:
        log.error(f"Gemini Fallback Error for '{city}': {fallback_error}", exc_info=True)
        raise AqiFetchError("Failed to fetch AQI data. Please try again.") from fallback_error


def fetch_aqi_for_location(lat, lon):
    """Fetches AQI data for a coordinate pair (search-grounded, uncached).

    Raises:
        ValueError: If the coordinates are not numeric.
        AqiFetchError: If the request fails or the reply cannot be parsed.
    """
    lat, lon = float(lat), float(lon)
    try:
        log.info(f"Requesting AQI from Gemini for location {lat:.4f}, {lon:.4f}")
        response = _generate(_location_prompt(lat, lon), config=_search_config())
        raw = extract_json(response.text or "{}")
        return normalize_aqi_payload(raw, fallback_city=f"Loc: {lat:.2f}, {lon:.2f}", source_urls=[])
    except Exception as e:
        log.error(f"Gemini Location Error for {lat}, {lon}: {e}", exc_info=True)
        raise AqiFetchError("Failed to fetch location data.") from e


def fetch_city_suggestions(query):
    """Returns up to three city suggestions for an autocomplete query.

    Queries shorter than the configured minimum return [] without a call.
    Successful answers are memoised per normalized query in a bounded LRU
    cache; failures return [] and are not memoised.
    """
    clean_query = (query or '').strip().lower()
    if len(clean_query) < MIN_SUGGESTION_QUERY_LENGTH:
        return []

    with _suggestion_lock:
        cached = _suggestion_cache.get(clean_query)
    if cached is not None:
        return list(cached)

    prompt = (f'List 3 major Indian cities matching "{query.strip()}". '
              'JSON only: [{"name": "City", "aqi": 100}]. Title case.')
    try:
        response = _generate(prompt, config=_json_config())
        raw = extract_json(response.text or "[]")
        if not isinstance(raw, list):
            raise ValueError(f"Expected a JSON array of suggestions, got {type(raw).__name__}.")
        suggestions = [CitySuggestion.from_dict(item) for item in raw
                       if isinstance(item, dict) and item.get('name')]
    except Exception as e:
        log.error(f"Suggestion Error for '{clean_query}': {e}")
        return []

    with _suggestion_lock:
        _suggestion_cache[clean_query] = suggestions
    return list(suggestions)


def clear_suggestion_cache():
    with _suggestion_lock:
        _suggestion_cache.clear()


def send_chat_message(message, history, aqi_context=None):
    """Sends a chat turn to the assistant and returns the reply text.

    Args:
        message (str): the new user message.
        history (list[ChatMessage]): prior conversation; the welcome message and
            typing placeholders are not sent.
        aqi_context (AqiData | None): data currently shown on the dashboard.

    Returns:
        str: the reply, or a fixed apology when the service fails.
    """
    try:
        contents = [
            types.Content(role='user' if msg.role == 'user' else 'model', parts=[types.Part(text=msg.text)])
            for msg in history
            if msg.id != WELCOME_MESSAGE_ID and not msg.is_typing
        ]
        contents.append(types.Content(role='user', parts=[types.Part(text=message)]))

        response = _generate(contents, config=types.GenerateContentConfig(
            system_instruction=build_system_instruction(aqi_context)))
        return response.text or CHAT_EMPTY_REPLY
    except Exception as e:
        log.error(f"Chat Error: {e}", exc_info=True)
        return CHAT_ERROR_REPLY
