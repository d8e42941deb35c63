"""Alert headers the web client reads to show notifications after an API call."""

from __future__ import annotations

import logging
import os

APP_NAME = os.getenv("APP_NAME", "codefestApp")

_LOGGER = logging.getLogger(__name__)


def create_alert(message: str, param: str) -> dict[str, str]:
    return {
        f"X-{APP_NAME}-alert": message,
        f"X-{APP_NAME}-params": param,
    }


def create_entity_creation_alert(entity_name: str, param: str) -> dict[str, str]:
    return create_alert(f"A new {entity_name} is created with identifier {param}", param)


def create_entity_update_alert(entity_name: str, param: str) -> dict[str, str]:
    return create_alert(f"A {entity_name} is updated with identifier {param}", param)


def create_entity_deletion_alert(entity_name: str, param: str) -> dict[str, str]:
    return create_alert(f"A {entity_name} is deleted with identifier {param}", param)


def create_failure_alert(entity_name: str, error_key: str, default_message: str) -> dict[str, str]:
    """Headers for a rejected request; the client translates ``error.<error_key>`` itself."""

    _LOGGER.warning("Entity processing failed, %s", default_message)
    return {
        f"X-{APP_NAME}-error": f"error.{error_key}",
        f"X-{APP_NAME}-params": entity_name,
    }


def alert_header_names() -> list[str]:
    """Every alert header name, for CORS ``expose_headers``."""

    return [f"X-{APP_NAME}-alert", f"X-{APP_NAME}-error", f"X-{APP_NAME}-params"]
