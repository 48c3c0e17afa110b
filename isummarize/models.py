"""In-memory records passed between the pipeline stages.

Nothing here is persisted; every instance lives for one cycle at most.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

THREAD_MARKER = "(thread)"


@dataclass(frozen=True)
class Utterance:
    speaker_id: Optional[str]
    speaker_name: str
    text: str
    timestamp: str
    is_thread_reply: bool = False
    parent_timestamp: Optional[str] = None

    def transcript_line(self) -> str:
        """Render the utterance the way the summarization prompt expects."""
        text = " ".join(self.text.splitlines())
        if self.is_thread_reply:
            return f"{self.speaker_name} {THREAD_MARKER} said: {text}"
        return f"{self.speaker_name} said: {text}"


@dataclass
class ChannelWindow:
    channel_id: str
    channel_name: str
    since_timestamp: str
    until_timestamp: str
    utterances: List[Utterance] = field(default_factory=list)

    def root_timestamps(self) -> List[str]:
        """Timestamps of the top-level messages, in window order."""
        return [u.timestamp for u in self.utterances if not u.is_thread_reply]


@dataclass(frozen=True)
class SummaryRecord:
    topic: str
    summary: Optional[str] = None
    source_timestamp: Optional[str] = None


@dataclass(frozen=True)
class ChannelDigest:
    """Parsed summary for one channel.

    ``records`` is ``None`` for the "no activity" sentinel; a present digest
    always carries at least one record.
    """

    channel_id: str
    channel_name: str
    records: Optional[Tuple[SummaryRecord, ...]] = None

    @classmethod
    def no_activity(cls, channel_id: str, channel_name: str) -> "ChannelDigest":
        return cls(channel_id=channel_id, channel_name=channel_name, records=None)

    @classmethod
    def from_records(
        cls, channel_id: str, channel_name: str, records: List[SummaryRecord]
    ) -> "ChannelDigest":
        if not records:
            return cls.no_activity(channel_id, channel_name)
        return cls(channel_id=channel_id, channel_name=channel_name, records=tuple(records))

    @property
    def is_empty(self) -> bool:
        return self.records is None
