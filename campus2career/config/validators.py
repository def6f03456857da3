"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Return warnings for settings that are valid but probably unintended."""
    messages = []

    reconciliation = config_dict.get("reconciliation") or {}
    if isinstance(reconciliation, dict):
        if reconciliation.get("enabled") is False:
            messages.append(
                "Reconciliation is disabled; applications without a transaction will not be repaired"
            )
        interval = reconciliation.get("interval_minutes")
        if isinstance(interval, int) and interval < 5:
            messages.append(
                f"Short reconciliation interval ({interval}m) may hit marketplace API rate limits"
            )

    email = config_dict.get("email") or {}
    if isinstance(email, dict):
        if email.get("max_retries") == 0:
            messages.append("email.max_retries is 0; transient SMTP failures will not be retried")
        rate_limit = email.get("rate_limit_per_minute")
        if isinstance(rate_limit, int) and rate_limit > 500:
            messages.append(
                f"email.rate_limit_per_minute ({rate_limit}) is above most SMTP provider quotas"
            )

    return messages


def emit_warnings(messages: List[str]) -> None:
    for message in messages:
        warnings.warn(message, UserWarning, stacklevel=2)
