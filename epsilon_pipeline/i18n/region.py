"""Region-based default locale.

Looks up the client's coarse country with a public geo-IP service and maps
it onto one of the two UI locales.  The result is cached client-side as a
``{"lang": ..., "saved_at": ...}`` record; this module only decides whether
such a record is still fresh.  Lookup failures never surface: they are
logged and resolve to the default locale.
"""

from __future__ import annotations

import time
from typing import Any, Callable

import requests
from loguru import logger

from .locale import DEFAULT_LOCALE, normalize_locale

LOOKUP_URL = "https://ipwho.is/"
CACHE_DAYS = 30
SECONDS_PER_DAY = 60 * 60 * 24

SPANISH_REGIONS = frozenset({
    "AR", "BO", "CL", "CO", "CR", "CU", "DO", "EC", "SV", "GT", "HN", "MX",
    "NI", "PA", "PY", "PE", "PR", "UY", "VE", "ES",
})

_EMPTY_LOOKUP = {
    "country_code": "",
    "country": "",
    "city": "",
    "region": "",
    "timezone": "",
    "utc_offset": "",
}


def locale_for_country(country_code: str | None) -> str:
    cc = (country_code or "").strip().upper()
    return "es" if cc in SPANISH_REGIONS else "en"


def _timezone_fields(tz: Any) -> tuple[str, str]:
    if isinstance(tz, dict):
        return str(tz.get("id") or ""), str(tz.get("utc") or "")
    return str(tz or ""), ""


def lookup_region(
    ip: str | None = None,
    *,
    url: str = LOOKUP_URL,
    timeout: float = 3.0,
    session: requests.Session | None = None,
) -> dict[str, str]:
    """Coarse geo lookup for *ip* (the caller's own address when ``None``).

    Always returns the same keys; every field is empty when the lookup fails.
    """
    http = session if session is not None else requests
    target = url.rstrip("/") + "/" + (ip or "")
    try:
        resp = http.get(target, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Region lookup failed for {}: {}", target, exc)
        return dict(_EMPTY_LOOKUP)
    if not isinstance(data, dict):
        logger.warning("Region lookup returned unexpected payload: {!r}", data)
        return dict(_EMPTY_LOOKUP)

    tz_id, utc = _timezone_fields(data.get("timezone"))
    return {
        "country_code": str(data.get("country_code") or ""),
        "country": str(data.get("country") or ""),
        "city": str(data.get("city") or ""),
        "region": str(data.get("region") or data.get("region_name") or ""),
        "timezone": tz_id,
        "utc_offset": utc,
    }


def detect_locale(ip: str | None = None, **lookup_kwargs: Any) -> str:
    """Default locale for the client at *ip*."""
    info = lookup_region(ip, **lookup_kwargs)
    if not info["country_code"]:
        return DEFAULT_LOCALE
    return locale_for_country(info["country_code"])


def make_preference(lang: str, now: float | None = None) -> dict[str, Any]:
    """Cache record for an explicit or detected locale choice."""
    return {
        "lang": normalize_locale(lang),
        "saved_at": time.time() if now is None else now,
    }


def cached_locale(
    record: dict[str, Any] | None,
    now: float | None = None,
    max_age_days: int = CACHE_DAYS,
) -> str | None:
    """Locale from a cache record, or ``None`` when missing or expired."""
    if not record or record.get("lang") not in ("en", "es"):
        return None
    saved_at = record.get("saved_at")
    if not isinstance(saved_at, (int, float)):
        return None
    now = time.time() if now is None else now
    if now - saved_at > max_age_days * SECONDS_PER_DAY:
        return None
    return record["lang"]


def resolve_locale(
    record: dict[str, Any] | None,
    detect: Callable[[], str],
    now: float | None = None,
    max_age_days: int = CACHE_DAYS,
) -> tuple[str, dict[str, Any]]:
    """Pick the UI locale, consulting *detect* only when the cache is stale.

    Returns the locale and the record to store back on the client.
    """
    lang = cached_locale(record, now=now, max_age_days=max_age_days)
    if lang is not None:
        return lang, dict(record)  # type: ignore[arg-type]
    lang = normalize_locale(detect())
    return lang, make_preference(lang, now)
