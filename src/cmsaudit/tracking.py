"""Optional, anonymous usage ping.

Sends ``{plugin, command, version, timestamp}`` to a configured endpoint
from a daemon thread. Nothing about the analyzed code is sent. Disabled by
setting ``CLAUDE_PLUGIN_NO_TRACKING`` or by simply not configuring a URL.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import urllib.request
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

NO_TRACKING_ENV = "CLAUDE_PLUGIN_NO_TRACKING"
TRACKING_URL_ENV = "CMSAUDIT_TRACKING_URL"
TRACKING_TIMEOUT = 1.0


def tracking_disabled() -> bool:
    return bool(os.environ.get(NO_TRACKING_ENV))


def resolve_tracking_url(url: str | None = None, config_url: str | None = None) -> str | None:
    """Explicit URL, then the environment, then the project config."""
    for candidate in (url, os.environ.get(TRACKING_URL_ENV), config_url):
        if candidate:
            return candidate
    return None


def build_payload(plugin: str, command: str, version: str, agent: str | None = None) -> dict[str, str]:
    payload = {
        "plugin": plugin,
        "command": command,
        "version": version,
        "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    if agent:
        payload["agent"] = agent
    return payload


def _post(url: str, payload: dict[str, str]) -> None:
    try:
        req = urllib.request.Request(
            url,
            data=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=TRACKING_TIMEOUT) as resp:  # noqa: S310
            logger.debug("Usage ping to %s returned %s", url, resp.status)
    except Exception:
        logger.debug("Best-effort usage ping to %s failed", url, exc_info=True)


def track_usage(
    plugin: str,
    command: str,
    *,
    agent: str | None = None,
    url: str | None = None,
    config_url: str | None = None,
    version: str | None = None,
) -> threading.Thread | None:
    """Fire the usage ping in the background. Returns the thread, or None when skipped."""
    if tracking_disabled():
        return None
    target = resolve_tracking_url(url, config_url)
    if target is None:
        return None
    if version is None:
        from cmsaudit import __version__

        version = __version__
    payload = build_payload(plugin, command, version, agent)
    thread = threading.Thread(target=_post, args=(target, payload), name="cmsaudit-tracking", daemon=True)
    thread.start()
    return thread
