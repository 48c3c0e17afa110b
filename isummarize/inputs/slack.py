"""slack.py – Slack Input Adapter

Purpose
-------
Turns the last day of activity in every channel the bot belongs to into
:class:`~isummarize.models.ChannelWindow` objects ready for summarization.

Key design considerations
-------------------------
1. **Thread aggregation** – replies are flattened right after their root so
   the summarizer reads each discussion as one unit.
2. **Entity linking** – ``<@U…>`` mention tokens and speakers are resolved to
   display names through a process-wide cache.
3. **Noise filtering** – bot posts, system subtypes (joins, topic changes…)
   and the bot's own summon command never reach the prompt.
4. **Graceful degradation** – a failing channel or thread is logged and
   contributes nothing; the rest of the cycle carries on.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
import re
import threading

from isummarize import cloud_logging as logging
from isummarize.errors import TransportError
from isummarize.helper_functions import slack_ts_key
from isummarize.models import ChannelWindow, Utterance

__all__ = [
    "ConversationCollector",
    "IdentifierResolver",
    "ThreadAggregator",
    "is_automated",
]

_MENTION_RE = re.compile(r"<@([A-Z0-9]+)(?:\|[^>]*)?>")


def is_automated(message: Dict[str, Any]) -> bool:
    """True for system-subtype messages and anything posted by a bot."""
    return bool(message.get("subtype")) or bool(message.get("bot_id"))


# ---------------------------------------------------------------------------
# IdentifierResolver
# ---------------------------------------------------------------------------


class IdentifierResolver:
    """Resolve Slack user IDs to display names, caching hits for the process.

    Lookup failures are logged and return ``None``; they are never cached so
    a later call may succeed.  The cache is guarded by a lock because channel
    collection can run on worker threads; two threads missing on the same ID
    simply both look it up.
    """

    def __init__(self, fetch_user_profile: Callable[[str], Dict[str, Optional[str]]]):
        self._fetch_user_profile = fetch_user_profile
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        with self._lock:
            cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        try:
            profile = self._fetch_user_profile(user_id)
        except TransportError as exc:
            logging.log_text(f"Error getting user name for {user_id}: {exc}", severity="ERROR")
            return None

        name = profile.get("display_name") or profile.get("real_name") or profile.get("handle")
        if not name:
            logging.log_text(f"User {user_id} has no usable name", severity="WARNING")
            return None

        with self._lock:
            self._cache.setdefault(user_id, name)
        return name

    def substitute_identifiers(self, text: str) -> str:
        """Replace ``<@ID>`` tokens with ``@name``; unresolved tokens are kept."""
        if not text or "<@" not in text:
            return text or ""

        def _replace(match: "re.Match[str]") -> str:
            name = self.resolve(match.group(1))
            return f"@{name}" if name else match.group(0)

        return _MENTION_RE.sub(_replace, text)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


# ---------------------------------------------------------------------------
# ThreadAggregator
# ---------------------------------------------------------------------------


class ThreadAggregator:
    """Fetch one channel's root messages and their threads as utterances.

    Parameters
    ----------
    transport:
        Object exposing ``fetch_history`` and ``fetch_replies``
        (see :class:`isummarize.connections.slack_client.SlackTransport`).
    resolver:
        Shared :class:`IdentifierResolver`.
    trigger_phrase:
        Root messages whose resolved text equals this phrase are dropped.
    history_limit:
        Page size for the history request.
    """

    def __init__(
        self,
        transport: Any,
        resolver: IdentifierResolver,
        *,
        trigger_phrase: str = "@i_summarize summarize",
        history_limit: int = 100,
    ) -> None:
        self._transport = transport
        self._resolver = resolver
        self._trigger_phrase = trigger_phrase.strip()
        self._history_limit = history_limit

    def _to_utterance(
        self, message: Dict[str, Any], text: str, parent_ts: Optional[str] = None
    ) -> Utterance:
        user_id = message.get("user")
        speaker = self._resolver.resolve(user_id) or user_id or "unknown"
        return Utterance(
            speaker_id=user_id,
            speaker_name=speaker,
            text=text,
            timestamp=message["ts"],
            is_thread_reply=parent_ts is not None,
            parent_timestamp=parent_ts,
        )

    def _collect_replies(self, channel_id: str, root_ts: str) -> List[Utterance]:
        try:
            replies = self._transport.fetch_replies(channel_id, root_ts)
        except TransportError as exc:
            logging.log_text(
                f"Error retrieving replies for {channel_id}/{root_ts}: {exc}",
                severity="ERROR",
            )
            return []

        thread = [
            reply
            for reply in replies
            if reply.get("ts") and reply["ts"] != root_ts and not is_automated(reply)
        ]
        thread.sort(key=lambda reply: slack_ts_key(reply["ts"]))
        return [
            self._to_utterance(
                reply, self._resolver.substitute_identifiers(reply.get("text", "")), root_ts
            )
            for reply in thread
        ]

    def collect(self, channel_id: str, since_ts: str, until_ts: str) -> List[Utterance]:
        try:
            messages = self._transport.fetch_history(
                channel_id, since_ts, until_ts, self._history_limit
            )
        except TransportError as exc:
            logging.log_text(
                f"Error retrieving messages for {channel_id}: {exc}", severity="ERROR"
            )
            return []

        # History arrives newest first.
        roots = sorted(
            (m for m in messages if m.get("ts") and not is_automated(m)),
            key=lambda m: slack_ts_key(m["ts"]),
        )

        utterances: List[Utterance] = []
        for message in roots:
            text = self._resolver.substitute_identifiers(message.get("text", ""))
            if text.strip() == self._trigger_phrase:
                continue
            utterances.append(self._to_utterance(message, text))
            if (message.get("reply_count") or 0) > 0:
                utterances.extend(self._collect_replies(channel_id, message["ts"]))

        logging.log_text(
            f"Collected {len(utterances)} utterances from {channel_id} "
            f"({len(roots)} root messages).",
            severity="DEBUG",
        )
        return utterances


# ---------------------------------------------------------------------------
# ConversationCollector
# ---------------------------------------------------------------------------


def _slack_ts(moment: datetime) -> str:
    return f"{moment.timestamp():.6f}"


class ConversationCollector:
    """Build one :class:`ChannelWindow` per joined channel.

    With ``max_workers > 1`` channels are aggregated on a thread pool; the
    returned list always follows the channel directory order.
    """

    def __init__(
        self,
        transport: Any,
        aggregator: ThreadAggregator,
        *,
        lookback_hours: int = 24,
        max_workers: int = 1,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._transport = transport
        self._aggregator = aggregator
        self._lookback = timedelta(hours=lookback_hours)
        self._max_workers = max(1, max_workers)
        self._clock = clock

    def _window(self, channel: Dict[str, str], since_ts: str, until_ts: str) -> ChannelWindow:
        utterances = self._aggregator.collect(channel["id"], since_ts, until_ts)
        return ChannelWindow(
            channel_id=channel["id"],
            channel_name=channel["name"],
            since_timestamp=since_ts,
            until_timestamp=until_ts,
            utterances=utterances,
        )

    def collect_all(self) -> List[ChannelWindow]:
        """Raises :class:`TransportError` when the channel list itself fails."""
        channels = self._transport.list_joined_channels()
        now = self._clock()
        since_ts, until_ts = _slack_ts(now - self._lookback), _slack_ts(now)

        if self._max_workers == 1 or len(channels) < 2:
            return [self._window(channel, since_ts, until_ts) for channel in channels]

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            return list(pool.map(lambda c: self._window(c, since_ts, until_ts), channels))
