"""digest.py – Summary parsing & report rendering

The completion endpoint answers in free text.  :pyfunc:`parse_summary` turns
that text back into :class:`~isummarize.models.SummaryRecord` objects, and the
``format_*`` helpers render them as Slack mrkdwn quoted blocks.

Timestamp pairing
-----------------
Record *i* is linked to the *i*-th root message of the window.  The pairing
is best-effort: it assumes the model kept topics in the order the messages
were written.  Nothing verifies that, so a reordered or merged answer links
topics to the wrong message.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple
import re

from isummarize import cloud_logging as logging
from isummarize.errors import ParseError
from isummarize.models import ChannelDigest, ChannelWindow, SummaryRecord

__all__ = [
    "extract_links",
    "format_channel_digest",
    "format_record",
    "format_report",
    "no_activity_notice",
    "parse_permalink",
    "parse_summary",
    "permalink",
]

REPORT_HEADER = "*Good morning, this is your daily summary:*"

_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_TOPIC_LABEL_RE = re.compile(r"^Topic(?:\s*\d+)?\s*:\s*", re.IGNORECASE)
_SUMMARY_LABEL_RE = re.compile(r"^Summary(?:\s*\d+)?\s*:\s*", re.IGNORECASE)
_PERMALINK_RE = re.compile(r"/archives/(?P<channel>[A-Z0-9]+)(?:/p(?P<ts>\d+))?")
_LINK_RE = re.compile(r"<(?P<url>[^|>]+)\|(?P<label>[^>]*)>")


# ---------------------------------------------------------------------------
# Permalinks
# ---------------------------------------------------------------------------


def permalink(archive_url: str, channel_id: str, timestamp: Optional[str] = None) -> str:
    """``<archive>/<channel>`` plus ``/p<ts without dot>`` when *timestamp* is set."""
    link = f"{archive_url.rstrip('/')}/{channel_id}"
    if timestamp:
        link = f"{link}/p{timestamp.replace('.', '')}"
    return link


def parse_permalink(url: str) -> Tuple[Optional[str], Optional[str]]:
    """Recover ``(channel_id, timestamp)`` from a link built by :pyfunc:`permalink`."""
    match = _PERMALINK_RE.search(url)
    if match is None:
        return None, None
    raw_ts = match.group("ts")
    if not raw_ts or len(raw_ts) <= 6:
        return match.group("channel"), None
    return match.group("channel"), f"{raw_ts[:-6]}.{raw_ts[-6:]}"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_block(block: str) -> Tuple[str, Optional[str]]:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    if not lines:
        raise ParseError("empty block")

    topic = _TOPIC_LABEL_RE.sub("", lines[0]).strip()
    if not topic:
        raise ParseError(f"block has no topic text: {lines[0]!r}")

    summary: Optional[str] = None
    if len(lines) > 1:
        summary = _SUMMARY_LABEL_RE.sub("", lines[1]).strip() or None
    return topic, summary


def parse_summary(raw_text: str, window: ChannelWindow) -> List[SummaryRecord]:
    """Split *raw_text* into ordered records linked to the window's roots.

    Blocks are separated by blank lines.  Each block's first line is the topic
    (an optional ``Topic N:`` label is stripped) and the second the summary
    (optional ``Summary N:`` label stripped).  A block without a second line
    yields ``summary=None``; a block with no usable topic is logged and
    skipped.
    """
    if not raw_text or not raw_text.strip() or not window.utterances:
        return []

    roots = window.root_timestamps()
    records: List[SummaryRecord] = []
    for block in _BLOCK_SPLIT_RE.split(raw_text.strip()):
        if not block.strip():
            continue
        try:
            topic, summary = _parse_block(block)
        except ParseError as exc:
            logging.log_text(
                f"Skipping unparseable summary block for {window.channel_id}: {exc}",
                severity="WARNING",
            )
            continue
        position = len(records)
        source_ts = roots[position] if position < len(roots) else None
        records.append(SummaryRecord(topic=topic, summary=summary, source_timestamp=source_ts))

    return records


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def no_activity_notice(lookback_hours: int = 24) -> str:
    return f"There weren't any meaningful conversations in the last {lookback_hours} hours."


def format_record(record: SummaryRecord, archive_url: str, channel_id: str) -> str:
    link = permalink(archive_url, channel_id, record.source_timestamp)
    lines = [f"><{link}|{record.topic}>"]
    if record.summary:
        lines.append(f">{record.summary}")
    return "\n".join(lines) + "\n"


def format_channel_digest(
    digest: ChannelDigest, archive_url: str, *, lookback_hours: int = 24
) -> str:
    """Render one channel: linked ``#name`` header then its quoted records."""
    header = f"<{permalink(archive_url, digest.channel_id)}|#{digest.channel_name}> "
    if digest.is_empty:
        body = no_activity_notice(lookback_hours)
    else:
        body = "\n".join(
            format_record(record, archive_url, digest.channel_id) for record in digest.records
        )
    return f"{header}\n{body}\n\n"


def format_report(
    digests: Iterable[ChannelDigest], archive_url: str, *, lookback_hours: int = 24
) -> str:
    sections = "".join(
        format_channel_digest(digest, archive_url, lookback_hours=lookback_hours)
        for digest in digests
    )
    return f"{REPORT_HEADER} \n\n{sections}"


def extract_links(report_text: str) -> List[Tuple[str, str]]:
    """Return ``(url, label)`` pairs for every mrkdwn link in *report_text*."""
    return [(m.group("url"), m.group("label")) for m in _LINK_RE.finditer(report_text)]
