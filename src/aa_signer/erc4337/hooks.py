"""Fire-and-forget dispatch of lifecycle hooks."""

from __future__ import annotations

import logging
from typing import Any

from .config import Hooks

logger = logging.getLogger(__name__)


def notify(hooks: Hooks | None, name: str, payload: Any) -> None:
    """Invoke ``hooks.<name>(payload)`` if set; exceptions are logged, never raised."""
    if hooks is None:
        return

    callback = getattr(hooks, name, None)
    if callback is None:
        return

    try:
        callback(payload)
    except Exception:
        logger.exception("Lifecycle hook %s failed", name)
