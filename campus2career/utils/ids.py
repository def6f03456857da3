"""Opaque identifier generation for locally-owned records."""

import secrets
import time


def _new_id(prefix: str) -> str:
    # <prefix>_<epoch millis>_<random hex>; sortable by creation time per prefix
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def new_application_id() -> str:
    return _new_id("app")


def new_invite_id() -> str:
    return _new_id("inv")


def new_notification_id() -> str:
    return _new_id("notif")
