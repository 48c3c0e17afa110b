from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from isummarize import cloud_logging as logging
from isummarize.connections import openai_client
from isummarize.connections.slack_client import SlackTransport
from isummarize.digest import format_report, parse_summary
from isummarize.errors import TransportError
from isummarize.inputs.slack import (
    ConversationCollector,
    IdentifierResolver,
    ThreadAggregator,
)
from isummarize.models import THREAD_MARKER, ChannelDigest, ChannelWindow
from isummarize.outputs.slack import deliver, open_recipient_channel
from isummarize.settings import SamplingConfig, Settings

"""verbs.py – Action primitives for iSummarize

Verbs orchestrate the lower-level *inputs* (Slack collection), *connections*
(OpenAI) and *outputs* (Slack delivery) without embedding transport details.

The main verb is :pyfunc:`run_cycle`: collect every joined channel, summarize
each window, render the report and post it to the recipient.  The scheduler,
the HTTP API and the CLI all go through it.
"""

__all__ = [
    "Services",
    "build_prompt",
    "build_services",
    "generate_report",
    "run_cycle",
    "summarize_channels",
    "summarize_window",
]

CompleteFn = Callable[[str, SamplingConfig], str]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Collaborators one cycle needs; built once per process."""

    settings: Settings
    transport: Any
    collector: ConversationCollector
    complete: CompleteFn


def build_services(
    settings: Settings,
    *,
    transport: Optional[Any] = None,
    complete: Optional[CompleteFn] = None,
) -> Services:
    """Build the default Slack/OpenAI-backed :class:`Services` from *settings*."""
    if transport is None:
        transport = SlackTransport(
            settings.slack_bot_token,
            timeout=settings.request_timeout,
            channel_types=settings.channel_types,
        )
    if complete is None:
        openai_client.configure(api_key=settings.openai_api_key, timeout=settings.request_timeout)

        def complete(prompt: str, sampling: SamplingConfig) -> str:
            return openai_client.complete(prompt, sampling, model=settings.openai_model)

    resolver = IdentifierResolver(transport.fetch_user_profile)
    aggregator = ThreadAggregator(
        transport,
        resolver,
        trigger_phrase=settings.trigger_phrase,
        history_limit=settings.history_limit,
    )
    collector = ConversationCollector(
        transport,
        aggregator,
        lookback_hours=settings.lookback_hours,
        max_workers=settings.channel_workers,
    )
    return Services(settings=settings, transport=transport, collector=collector, complete=complete)


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


def build_prompt(window: ChannelWindow) -> str:
    """Return the single instruction block sent to the completion endpoint.

    The transcript is every utterance in window order, joined by single
    spaces; thread replies carry the literal ``(thread)`` marker.
    """
    transcript = " ".join(u.transcript_line() for u in window.utterances)
    return (
        "Please provide a summary with separate topics and summaries for the "
        "following Slack channel conversations and their threads with reference "
        f'to users. The main conversation and threads are separated by "{THREAD_MARKER}". '
        "Separate each topic and summary pair with a blank line. "
        "Format the output as:\n\n"
        "Topic 1\nSummary 1\n\nTopic 2\nSummary 2\n\n"
        f"{transcript}"
    )


# ---------------------------------------------------------------------------
# Public API – verbs
# ---------------------------------------------------------------------------


def summarize_window(
    window: ChannelWindow,
    complete: CompleteFn,
    sampling: Optional[SamplingConfig] = None,
) -> Optional[ChannelDigest]:
    """Summarize one channel window.

    Returns the "no activity" sentinel for an empty window (without calling
    the model) and ``None`` when the completion call fails.
    """
    if not window.utterances:
        return ChannelDigest.no_activity(window.channel_id, window.channel_name)

    try:
        raw_text = complete(build_prompt(window), sampling or SamplingConfig())
    except TransportError as exc:
        logging.log_text(
            f"Summarization failed for {window.channel_id}: {exc}", severity="ERROR"
        )
        return None

    records = parse_summary(raw_text, window)
    return ChannelDigest.from_records(window.channel_id, window.channel_name, records)


def summarize_channels(
    windows: List[ChannelWindow],
    complete: CompleteFn,
    sampling: Optional[SamplingConfig] = None,
) -> List[ChannelDigest]:
    """Summarize every window in order; failed channels are left out."""
    digests: List[ChannelDigest] = []
    for window in windows:
        digest = summarize_window(window, complete, sampling)
        if digest is not None:
            digests.append(digest)
    return digests


def generate_report(services: Services) -> Optional[str]:
    """Collect, summarize and render the multi-channel report.

    Returns ``None`` when the channel directory cannot be listed.
    """
    settings = services.settings
    try:
        windows = services.collector.collect_all()
    except TransportError as exc:
        logging.log_text(f"Error listing channels: {exc}", severity="ERROR")
        return None

    digests = summarize_channels(windows, services.complete, settings.sampling)
    logging.log_text(
        f"Summarized {len(digests)} of {len(windows)} channel(s).", severity="INFO"
    )
    return format_report(digests, settings.archive_url, lookback_hours=settings.lookback_hours)


def run_cycle(services: Services, recipient_id: str) -> bool:
    """Run collect → summarize → format → deliver once for *recipient_id*.

    Failing to open the recipient's DM channel aborts the cycle before any
    collection happens.  Returns ``True`` only when the report was posted.
    """
    channel_id = open_recipient_channel(services.transport, recipient_id)
    if channel_id is None:
        return False

    report = generate_report(services)
    if report is None:
        return False

    return deliver(services.transport, channel_id, report)
