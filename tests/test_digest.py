"""Tests for `isummarize.digest` – response parsing and report rendering."""

from __future__ import annotations

from isummarize.digest import (
    REPORT_HEADER,
    extract_links,
    format_channel_digest,
    format_record,
    format_report,
    no_activity_notice,
    parse_permalink,
    parse_summary,
    permalink,
)
from isummarize.models import ChannelDigest, ChannelWindow, SummaryRecord, Utterance

ARCHIVE = "https://example.slack.com/archives"


def _window(*timestamps, replies=()):
    utterances = [Utterance("U1", "Ann", f"text {ts}", ts) for ts in timestamps]
    for parent, ts in replies:
        idx = next(i for i, u in enumerate(utterances) if u.timestamp == parent) + 1
        utterances.insert(idx, Utterance("U2", "Bob", "reply", ts, True, parent))
    return ChannelWindow("C1", "general", "0", "9", utterances)


# ------------------------------- parse_summary ------------------------------


def test_parse_labelled_blocks():
    raw = "Topic: Launch\nSummary: Went well\n\nTopic: Bugs\nSummary: Fixed 3"
    records = parse_summary(raw, _window("1.000001", "2.000002"))

    assert [(r.topic, r.summary) for r in records] == [
        ("Launch", "Went well"),
        ("Bugs", "Fixed 3"),
    ]


def test_parse_numbered_labels_and_indentation():
    raw = "Topic 1: Launch\n  Summary 1: Went well\n  \n  Topic 2: Bugs\n  Summary 2: Fixed 3\n"
    records = parse_summary(raw, _window("1.000001", "2.000002"))
    assert [(r.topic, r.summary) for r in records] == [
        ("Launch", "Went well"),
        ("Bugs", "Fixed 3"),
    ]


def test_parse_unlabelled_block_and_missing_summary():
    raw = "Release planning\nWe agreed on Friday.\n\nLunch"
    records = parse_summary(raw, _window("1.000001", "2.000002"))
    assert records[0] == SummaryRecord("Release planning", "We agreed on Friday.", "1.000001")
    assert records[1] == SummaryRecord("Lunch", None, "2.000002")


def test_parse_pairs_with_root_timestamps_only():
    window = _window("1.000001", "5.000005", replies=[("1.000001", "2.000002")])
    records = parse_summary("A\na\n\nB\nb\n\nC\nc", window)

    assert [r.source_timestamp for r in records] == ["1.000001", "5.000005", None]


def test_parse_skips_blocks_without_topic_text():
    records = parse_summary("Topic:\nSummary: orphan\n\nTopic: Real\nSummary: kept", _window("1.0"))
    assert [(r.topic, r.source_timestamp) for r in records] == [("Real", "1.0")]


def test_parse_empty_inputs():
    assert parse_summary("", _window("1.000001")) == []
    assert parse_summary("   \n\n ", _window("1.000001")) == []
    assert parse_summary("Topic: X\nSummary: y", _window()) == []


# --------------------------------- permalinks -------------------------------


def test_permalink_format():
    assert permalink(ARCHIVE, "C1") == f"{ARCHIVE}/C1"
    assert permalink(ARCHIVE + "/", "C1", "1700000000.123456") == f"{ARCHIVE}/C1/p1700000000123456"


def test_parse_permalink():
    assert parse_permalink(f"{ARCHIVE}/C1/p1700000000123456") == ("C1", "1700000000.123456")
    assert parse_permalink(f"{ARCHIVE}/C1") == ("C1", None)
    assert parse_permalink("https://example.com/") == (None, None)


def test_format_then_reparse_recovers_channel_and_timestamp():
    record = SummaryRecord("Launch", "Went well", "1700000000.123456")
    digest = ChannelDigest.from_records("C0ABC", "general", [record])

    rendered = format_channel_digest(digest, ARCHIVE)
    links = dict((label, url) for url, label in extract_links(rendered))

    assert parse_permalink(links["Launch"]) == ("C0ABC", "1700000000.123456")
    assert parse_permalink(links["#general"]) == ("C0ABC", None)


# --------------------------------- formatting -------------------------------


def test_format_record_quoted_block():
    record = SummaryRecord("Launch", "Went well", "1.000001")
    assert format_record(record, ARCHIVE, "C1") == f"><{ARCHIVE}/C1/p1000001|Launch>\n>Went well\n"


def test_format_record_without_timestamp_or_summary():
    assert format_record(SummaryRecord("Lunch"), ARCHIVE, "C1") == f"><{ARCHIVE}/C1|Lunch>\n"


def test_no_activity_digest_renders_notice():
    digest = ChannelDigest.from_records("C1", "quiet", [])
    assert digest.is_empty
    assert digest.records is None

    rendered = format_channel_digest(digest, ARCHIVE, lookback_hours=24)
    assert rendered == f"<{ARCHIVE}/C1|#quiet> \n{no_activity_notice(24)}\n\n"
    assert "There weren't any meaningful conversations in the last 24 hours." in rendered


def test_format_report_keeps_channel_order():
    digests = [
        ChannelDigest.from_records("C1", "general", [SummaryRecord("Launch", "ok", "1.0")]),
        ChannelDigest.no_activity("C2", "quiet"),
    ]
    report = format_report(digests, ARCHIVE)

    assert report.startswith(REPORT_HEADER)
    assert report.index("#general") < report.index("#quiet")
