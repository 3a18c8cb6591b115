# File: atmos/autocomplete.py

"""
Autocomplete request tracking.

Keystrokes are debounced in the browser (assets/autocomplete.js); every
request that survives the debounce window is given a monotonically increasing
id. Only the answer to the most recent request may update the suggestion list,
so a slow answer for "del" can never overwrite the answer for "delhi".
Submitting the search or selecting a suggestion settles the box: the counter
is bumped, which discards any answer still in flight, and a late debounced
copy of the settled text issues no lookup.
"""

import logging
import threading

from cachetools import LRUCache

from atmos.config_loader import get_setting

log = logging.getLogger(__name__)

MIN_QUERY_LENGTH = int(get_setting('autocomplete', 'min_query_length', 2))
DEBOUNCE_MS = int(get_setting('autocomplete', 'debounce_ms', 500))
MAX_SESSIONS = int(get_setting('autocomplete', 'max_sessions', 1000))

SEARCHING_TEXT = "Searching..."
NO_MATCHES_TEXT = "No matching cities found"


class SuggestionTracker:
    """Suggestion state for one search box."""

    def __init__(self, min_query_length=MIN_QUERY_LENGTH):
        self.min_query_length = min_query_length
        self.suggestions = []
        self.show_suggestions = False
        self.is_suggesting = False
        self.no_matches = False
        self._latest_request_id = 0
        self._settled_value = None
        self._lock = threading.Lock()

    @property
    def latest_request_id(self):
        return self._latest_request_id

    def on_input(self, value):
        """Records a (debounced) input change.

        Returns the trimmed query when a request should be issued, or None
        when the input is too short or repeats the text the box was just
        settled on; short input clears the list and invalidates anything in
        flight.
        """
        query = (value or '').strip()
        with self._lock:
            settled, self._settled_value = self._settled_value, None
        if settled is not None and query == settled:
            return None
        if len(query) < self.min_query_length:
            self.invalidate()
            self.suggestions = []
            return None
        with self._lock:
            self.is_suggesting = True
            self.show_suggestions = True
            self.no_matches = False
        return query

    def begin_request(self):
        """Allocates the id of a new request; earlier ids become stale."""
        with self._lock:
            self._latest_request_id += 1
            return self._latest_request_id

    def is_current(self, request_id):
        return request_id == self._latest_request_id

    def resolve(self, request_id, results):
        """Applies results if ``request_id`` is still the latest. Returns True when applied."""
        with self._lock:
            if request_id != self._latest_request_id:
                log.debug(f"Discarding stale suggestions for request {request_id} "
                          f"(latest is {self._latest_request_id})")
                return False
            self.suggestions = list(results)
            self.is_suggesting = False
            self.show_suggestions = bool(self.suggestions)
            self.no_matches = not self.suggestions
            return True

    def fail(self, request_id):
        """Marks a request as failed; only the latest request clears the loading state."""
        with self._lock:
            if request_id != self._latest_request_id:
                return False
            self.is_suggesting = False
            return True

    def invalidate(self):
        """Discards in-flight requests and hides the list."""
        with self._lock:
            self._latest_request_id += 1
            self.show_suggestions = False
            self.is_suggesting = False
            self.no_matches = False

    def settle(self, value):
        """Fixes the box on ``value`` (a submitted search or a chosen suggestion).

        Anything in flight is discarded, and the next input change carrying
        the same text issues no lookup.
        """
        self.invalidate()
        with self._lock:
            self._settled_value = (value or '').strip()

    def suggestion_at(self, index):
        """Returns the suggestion at list position ``index``, or None when out of range."""
        if not isinstance(index, int) or index < 0:
            return None
        suggestions = self.suggestions
        return suggestions[index] if index < len(suggestions) else None

    def status_text(self):
        """Text for the status line under the search box ('' when nothing to say)."""
        if self.is_suggesting:
            return SEARCHING_TEXT
        if self.no_matches:
            return NO_MATCHES_TEXT
        return ''


class AutocompleteRegistry:
    """One SuggestionTracker per browser session, least recently used sessions evicted first."""

    def __init__(self, max_sessions=MAX_SESSIONS, min_query_length=MIN_QUERY_LENGTH):
        self.max_sessions = max_sessions
        self.min_query_length = min_query_length
        self._trackers = LRUCache(maxsize=max_sessions)
        self._lock = threading.Lock()

    def get(self, session_id):
        with self._lock:
            tracker = self._trackers.get(session_id)
            if tracker is None:
                tracker = SuggestionTracker(min_query_length=self.min_query_length)
                self._trackers[session_id] = tracker
            return tracker

    def __len__(self):
        with self._lock:
            return len(self._trackers)
