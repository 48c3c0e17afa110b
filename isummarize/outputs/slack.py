"""slack.py – Slack Output Adapter

Delivery side of the pipeline: posting the finished report into the
recipient's direct-message channel and refreshing the app's home tab.
Neither call is retried; a failed delivery waits for the next cycle.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from isummarize import cloud_logging as logging
from isummarize.errors import TransportError

__all__ = [
    "deliver",
    "home_view",
    "open_recipient_channel",
    "publish_home",
]


def open_recipient_channel(transport: Any, user_id: str) -> Optional[str]:
    """Return the DM channel ID for *user_id*, or ``None`` when it cannot be opened."""
    try:
        return transport.open_direct_channel(user_id)
    except TransportError as exc:
        logging.log_text(f"Error fetching user DM channel ID: {exc}", severity="ERROR")
        return None


def deliver(transport: Any, recipient_channel_id: str, report_text: str) -> bool:
    """Post *report_text* to *recipient_channel_id*; ``True`` on success."""
    try:
        transport.post_message(recipient_channel_id, report_text)
    except TransportError as exc:
        logging.log_text(f"Error sending summary message: {exc}", severity="ERROR")
        return False

    logging.log_text("Summary message sent successfully", severity="INFO")
    return True


def _cadence(interval_seconds: int) -> str:
    if interval_seconds == 86400:
        return "daily"
    for unit, size in (("hour", 3600), ("minute", 60)):
        if interval_seconds >= size:
            return f"every {interval_seconds // size} {unit}(s)"
    return f"every {max(1, interval_seconds)} second(s)"


def home_view(interval_seconds: int) -> Dict[str, Any]:
    cadence = _cadence(interval_seconds)
    return {
        "type": "home",
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": "*iSummarize*"}},
            {"type": "divider"},
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        ":slack: Slack Summary\n"
                        "Your Slack summary has been successfully configured.\n"
                        f"You will receive the summary {cadence} in your Messages tab."
                    ),
                },
            },
        ],
    }


def publish_home(transport: Any, user_id: str, interval_seconds: int) -> bool:
    try:
        transport.publish_home(user_id, home_view(interval_seconds))
    except TransportError as exc:
        logging.log_text(f"Error publishing home tab for {user_id}: {exc}", severity="WARNING")
        return False
    return True
