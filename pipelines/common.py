"""Shared utilities for retrieving external API responses."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

DEFAULT_TIMEOUT_SECONDS = 20.0
_DEFAULT_WAIT = wait_exponential(min=1, max=16)
_DEFAULT_STOP = stop_after_attempt(4)

_SENTINEL_STRINGS = {"", ".", "NA", "N/A", "null", "-"}

logger = logging.getLogger(__name__)

Headers = Mapping[str, str] | None
Params = Mapping[str, Any] | None


def is_upstream_unavailable(exc: BaseException) -> bool:
    """True for failures worth retrying: transport errors, 429 and 5xx responses."""

    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


@retry(
    wait=_DEFAULT_WAIT,
    stop=_DEFAULT_STOP,
    retry=retry_if_exception(is_upstream_unavailable),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def fetch_json(
    url: str,
    *,
    headers: Headers = None,
    params: Params = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """GET ``url`` and return the decoded JSON payload.

    Transient failures (network errors, rate limiting, server errors) are
    retried with exponential backoff; client errors such as 401 or 404 are
    raised immediately so callers can log and skip them.
    """

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(url, headers=headers, params=params)

    response.raise_for_status()
    return response.json()


def coerce_float(value: Any) -> float | None:
    """Parse upstream numeric values, mapping sentinels and non-finite numbers to ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped in _SENTINEL_STRINGS:
            return None
        try:
            numeric = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "coerce_float", "fetch_json", "is_upstream_unavailable"]
