from __future__ import annotations

from functools import lru_cache
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import RemoteProtocolError
from .logging_setup import get_correlation_id, get_logger
from .settings import settings

DEFAULT_TIMEOUT: tuple[int, int] = (5, 30)
TRANSIENT_STATUSES = (429, 500, 502, 503, 504)
# POST fica de fora: fulfillmentCreateV2 notifica o cliente e não é idempotente
READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

logger = get_logger("http")


def _build_retry(total: int, backoff_factor: float = 0.5) -> Retry:
    """Retry apenas de conexão/leitura para métodos de leitura; status HTTP nunca é repetido."""
    return Retry(
        total=total,
        connect=total,
        read=total,
        status=0,
        backoff_factor=backoff_factor,
        allowed_methods=READ_METHODS,
        raise_on_status=False,
        respect_retry_after_header=False,
    )


def _build_session() -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": "bulk-fulfillment/HTTPClient",
            "Accept": "application/json",
        }
    )
    adapter = HTTPAdapter(max_retries=_build_retry(settings.HTTP_MAX_RETRIES), pool_connections=10, pool_maxsize=10)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


@lru_cache(maxsize=1)
def _get_cached_session() -> requests.Session:
    return _build_session()


def get_session(session: requests.Session | None = None) -> requests.Session:
    return session or _get_cached_session()


def _request_with_handling(method: str, url: str, **kwargs: Any) -> requests.Response:
    timeout = kwargs.pop("timeout", DEFAULT_TIMEOUT)
    session: requests.Session = kwargs.pop("session", None) or get_session()

    headers = dict(kwargs.pop("headers", {}) or {})
    headers.setdefault("X-Correlation-ID", get_correlation_id())
    kwargs["headers"] = headers

    try:
        res = session.request(method, url, timeout=timeout, **kwargs)
        res.raise_for_status()
        logger.debug("HTTP %s OK", method, extra={"url": url, "status": res.status_code})
        return res

    except requests.Timeout as e:
        logger.warning("HTTP %s timeout", method, extra={"url": url})
        raise RemoteProtocolError(
            f"Timeout calling {url}",
            code="HTTP_TIMEOUT",
            cause=e,
            retryable=True,
            data={"url": url},
        ) from e

    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        retryable = bool(status in TRANSIENT_STATUSES)
        logger.error("HTTP %s error", method, extra={"url": url, "status": status, "retryable": retryable})
        if status == 429:
            msg = f"Rate limited (HTTP 429) calling {url}"
        elif status in (401, 403):
            msg = f"Not authorized (HTTP {status}) calling {url}"
        else:
            msg = f"HTTP {status} error calling {url}"
        raise RemoteProtocolError(
            msg,
            code="HTTP_ERROR",
            cause=e,
            retryable=retryable,
            data={"url": url, "status": status, "text": getattr(e.response, "text", None)},
        ) from e

    except requests.RequestException as e:
        logger.error("HTTP %s request exception", method, extra={"url": url})
        raise RemoteProtocolError(
            f"Network error calling {url}",
            code="HTTP_REQUEST_ERROR",
            cause=e,
            retryable=True,
            data={"url": url},
        ) from e


def http_get(url: str, **kwargs: Any) -> requests.Response:
    return _request_with_handling("GET", url, **kwargs)


def http_post(url: str, **kwargs: Any) -> requests.Response:
    return _request_with_handling("POST", url, **kwargs)
