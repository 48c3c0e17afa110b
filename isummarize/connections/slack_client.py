"""slack_client.py – Slack Web API Transport

Purpose
-------
The single place where the package talks to Slack.  Every method maps to one
Web API family and converts SDK failures into
:class:`~isummarize.errors.TransportError`, so callers handle one exception
type at the smallest enclosing scope.

Design goals
------------
1. **Bounded latency** – the underlying :class:`slack_sdk.WebClient` is built
   with a per-request timeout.
2. **No hidden retries** – the SDK's retry handlers are left off; the next
   scheduled cycle is the retry.
3. **Plain payloads** – methods return ``dict``/``list`` data rather than
   ``SlackResponse`` objects so fakes in tests can be simple dictionaries.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackClientError

from isummarize import cloud_logging as logging
from isummarize.errors import TransportError

__all__ = [
    "SlackTransport",
]

DEFAULT_CHANNEL_TYPES = "public_channel"
_LIST_PAGE_SIZE = 200


def _next_cursor(response: Any) -> Optional[str]:
    metadata = response.get("response_metadata") or {}
    return metadata.get("next_cursor") or None


class SlackTransport:
    """Slack Web API calls used by the pipeline.

    Parameters
    ----------
    token:
        Bot token (``xoxb-…``). Ignored when *client* is supplied.
    timeout:
        Per-request timeout in seconds.
    channel_types:
        Comma-separated ``conversations.list`` types. Adding
        ``private_channel`` requires the ``groups:read`` and
        ``groups:history`` scopes.
    client:
        Pre-built client exposing the ``slack_sdk.WebClient`` method names.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        channel_types: str = DEFAULT_CHANNEL_TYPES,
        client: Optional[Any] = None,
    ) -> None:
        self._channel_types = channel_types
        self._client = client if client is not None else WebClient(token=token, timeout=int(timeout))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _call(self, operation: str, **kwargs: Any) -> Any:
        method = getattr(self._client, operation.replace(".", "_"))
        try:
            return method(**kwargs)
        except (SlackClientError, OSError) as exc:
            logging.log_text(f"Slack {operation} failed: {exc}", severity="DEBUG")
            raise TransportError(operation, exc) from exc

    # ------------------------------------------------------------------
    # Channel directory / history
    # ------------------------------------------------------------------

    def list_joined_channels(self) -> List[Dict[str, str]]:
        """Return ``[{"id", "name"}]`` for non-archived channels the bot is in."""
        channels: List[Dict[str, str]] = []
        cursor: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {
                "exclude_archived": True,
                "types": self._channel_types,
                "limit": _LIST_PAGE_SIZE,
            }
            if cursor:
                kwargs["cursor"] = cursor
            response = self._call("conversations.list", **kwargs)
            for channel in response.get("channels", []):
                if channel.get("is_member") and not channel.get("is_archived"):
                    channels.append({"id": channel["id"], "name": channel.get("name", channel["id"])})
            cursor = _next_cursor(response)
            if not cursor:
                return channels

    def fetch_history(
        self, channel_id: str, since: str, until: str, limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Return up to *limit* root messages with ``since <= ts <= until``."""
        response = self._call(
            "conversations.history",
            channel=channel_id,
            oldest=since,
            latest=until,
            inclusive=True,
            limit=limit,
        )
        return list(response.get("messages", []))

    def fetch_replies(self, channel_id: str, root_timestamp: str) -> List[Dict[str, Any]]:
        """Return every message of a thread (Slack includes the root first)."""
        messages: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"channel": channel_id, "ts": root_timestamp}
            if cursor:
                kwargs["cursor"] = cursor
            response = self._call("conversations.replies", **kwargs)
            messages.extend(response.get("messages", []))
            cursor = _next_cursor(response)
            if not cursor:
                return messages

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def fetch_user_profile(self, user_id: str) -> Dict[str, Optional[str]]:
        """Return ``{"display_name", "real_name", "handle"}`` for *user_id*."""
        response = self._call("users.info", user=user_id)
        user = response.get("user") or {}
        profile = user.get("profile") or {}
        return {
            "display_name": profile.get("display_name") or None,
            "real_name": profile.get("real_name") or user.get("real_name") or None,
            "handle": user.get("name") or None,
        }

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def open_direct_channel(self, user_id: str) -> str:
        response = self._call("conversations.open", users=user_id)
        channel = response.get("channel") or {}
        if not channel.get("id"):
            raise TransportError("conversations.open", "no channel id in response")
        return channel["id"]

    def post_message(self, channel_id: str, text: str) -> None:
        self._call("chat.postMessage", channel=channel_id, text=text)

    def publish_home(self, user_id: str, view: Dict[str, Any]) -> None:
        self._call("views.publish", user_id=user_id, view=view)
