"""Reachability checks for the site under test."""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)


def is_target_reachable(url: str, timeout: int = 5) -> bool:
    """Return True when ``url`` answers an HTTP GET with a non-5xx status."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning(f"Target {url} is unreachable: {exc}")
        return False
    return response.status_code < 500
