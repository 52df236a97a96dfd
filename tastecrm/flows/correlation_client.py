"""
Taste Correlation Client - Queries the Qloo taste graph with purchase categories.

Contract: get_correlations() returns a list of CorrelationResult, or None when
correlation data is unavailable. It never raises; every failure (missing
config, network, non-2xx, bad JSON, token errors) is logged and becomes None.

Auth is chosen by configuration:
- QLOO_API_KEY set       -> static "x-api-key" header
- QLOO_CLIENT_ID/SECRET  -> OAuth client credentials, bearer token held in a TokenCache
"""

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from tastecrm import config

logger = logging.getLogger("tastecrm.flows.correlation")

CORRELATION_PATH = "/v2/users/tastes/correlations"
DOMAINS = ["music", "film", "tv", "podcasts", "books", "fashion", "dining", "travel"]
RESULTS_PER_DOMAIN = 10
TOKEN_REFRESH_MARGIN = 300  # seconds before provider expiry
DEFAULT_TOKEN_LIFETIME = 3600


@dataclass
class CorrelationResult:
    category: str
    name: str
    correlation_score: float

    def to_doc(self) -> dict:
        return {"category": self.category, "name": self.name,
                "correlationScore": self.correlation_score}


class CorrelationUnavailable(Exception):
    """Internal signal; converted to None before leaving the client."""
    pass


# ─── CREDENTIAL CACHE ─────────────────────────────────────────

class TokenCache:
    """Short-lived bearer token with expiry-aware refresh on read.

    A token is served until refresh_margin seconds before the provider's
    expires_in; after that the next read fetches a new one.
    """

    def __init__(self, refresh_margin: int = TOKEN_REFRESH_MARGIN,
                 clock: Callable[[], float] = time.monotonic):
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._token = None
        self._expires_at = 0.0

    def valid_token(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    def store(self, token: str, expires_in: float):
        self._token = token
        self._expires_at = self._clock() + max(float(expires_in) - self.refresh_margin, 0)

    def clear(self):
        self._token = None
        self._expires_at = 0.0

    def get(self, fetch: Callable[[], dict]) -> str:
        """Return a valid token, calling fetch() for a new one when stale.

        fetch must return {"access_token": str, "expires_in": seconds}.
        """
        token = self.valid_token()
        if token:
            return token
        payload = fetch()
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise CorrelationUnavailable("token response had no access_token")
        self.store(token, _lifetime_of(payload.get("expires_in")))
        return token


def _lifetime_of(expires_in) -> float:
    """Token lifetime in seconds; anything not a finite number gets the default."""
    if isinstance(expires_in, bool):
        return DEFAULT_TOKEN_LIFETIME
    try:
        seconds = float(expires_in)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_LIFETIME
    return seconds if math.isfinite(seconds) else DEFAULT_TOKEN_LIFETIME


# ─── CLIENT ───────────────────────────────────────────────────

class CorrelationClient:

    def __init__(self, base_url: str = None, api_key: str = None,
                 client_id: str = None, client_secret: str = None,
                 token_url: str = None, timeout: int = None,
                 token_cache: TokenCache = None):
        self.base_url = (config.QLOO_API_URL if base_url is None else base_url).rstrip("/")
        self.api_key = config.QLOO_API_KEY if api_key is None else api_key
        self.client_id = config.QLOO_CLIENT_ID if client_id is None else client_id
        self.client_secret = config.QLOO_CLIENT_SECRET if client_secret is None else client_secret
        self.token_url = token_url or config.QLOO_TOKEN_URL
        self.timeout = timeout or config.QLOO_TIMEOUT
        self.token_cache = token_cache or TokenCache()

    @property
    def auth_mode(self) -> Optional[str]:
        if self.api_key:
            return "api_key"
        if self.client_id and self.client_secret:
            return "oauth"
        return None

    def _fetch_token(self) -> dict:
        body = urlencode({
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }).encode("utf-8")
        req = Request(self.token_url, data=body, method="POST",
                      headers={"Content-Type": "application/x-www-form-urlencoded"})
        with urlopen(req, timeout=self.timeout) as resp:
            return json.loads(resp.read().decode())

    def _auth_headers(self) -> dict:
        if self.auth_mode == "api_key":
            return {"x-api-key": self.api_key}
        token = self.token_cache.get(self._fetch_token)
        return {"Authorization": f"Bearer {token}"}

    def _post(self, categories: list):
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers())
        body = json.dumps({
            "q": categories,
            "domain": DOMAINS,
            "results_per_domain": RESULTS_PER_DOMAIN,
        }).encode("utf-8")
        req = Request(f"{self.base_url}{CORRELATION_PATH}", data=body,
                      headers=headers, method="POST")
        with urlopen(req, timeout=self.timeout) as resp:
            return json.loads(resp.read().decode())

    def get_correlations(self, categories: list) -> Optional[list]:
        """Fetch taste correlations for a list of purchase categories.

        Returns:
            List of CorrelationResult (possibly empty), or None if unavailable.
        """
        categories = [c for c in (categories or []) if c]
        if not categories:
            return []
        if not self.base_url or not self.auth_mode:
            logger.warning("Correlation API not configured (QLOO_API_URL and a key or client "
                           "credentials are required); skipping", extra={"flow": "correlation"})
            return None

        try:
            payload = self._post(categories)
        except HTTPError as e:
            if e.code == 401 and self.auth_mode == "oauth":
                self.token_cache.clear()
            logger.error("Correlation API responded with status %s", e.code,
                         extra={"flow": "correlation"})
            return None
        except (URLError, TimeoutError, OSError) as e:
            logger.error("Correlation API request failed: %s", e, extra={"flow": "correlation"})
            return None
        except (ValueError, TypeError, CorrelationUnavailable) as e:
            logger.error("Correlation API returned unusable data: %s", e,
                         extra={"flow": "correlation"})
            return None

        return parse_correlations(payload)


def _score_of(entry: dict):
    for key in ("correlation_score", "correlationScore", "score"):
        value = entry.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def parse_correlations(payload) -> Optional[list]:
    """Turn a correlation response body into CorrelationResults.

    Entries missing a category, name or numeric score are skipped.
    """
    if isinstance(payload, dict):
        entries = payload.get("data", payload.get("results"))
    else:
        entries = payload
    if not isinstance(entries, list):
        logger.error("Correlation response has no result list", extra={"flow": "correlation"})
        return None

    results = []
    skipped = 0
    for entry in entries:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        category, name, score = entry.get("category"), entry.get("name"), _score_of(entry)
        if not isinstance(category, str) or not isinstance(name, str) or score is None:
            skipped += 1
            continue
        results.append(CorrelationResult(category=category, name=name, correlation_score=score))

    if skipped:
        logger.warning("Skipped %d unparseable correlation entries", skipped,
                       extra={"flow": "correlation"})
    return results


# ─── MODULE-LEVEL SINGLETON ───────────────────────────────────

_client_instance = None


def get_correlation_client() -> CorrelationClient:
    """Get or create the module-level correlation client."""
    global _client_instance
    if _client_instance is None:
        _client_instance = CorrelationClient()
    return _client_instance
