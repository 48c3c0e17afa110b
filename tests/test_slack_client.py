"""Tests for `isummarize.connections.slack_client`."""

from __future__ import annotations

import pytest
from slack_sdk.errors import SlackApiError

from isummarize.connections.slack_client import DEFAULT_CHANNEL_TYPES, SlackTransport
from isummarize.errors import TransportError


class _FakeWebClient:
    """Stands in for slack_sdk.WebClient; each method pops a scripted response."""

    def __init__(self, **responses):
        self.responses = {name: list(pages) for name, pages in responses.items()}
        self.calls: list[tuple[str, dict]] = []

    def _answer(self, name, kwargs):
        self.calls.append((name, kwargs))
        value = self.responses[name].pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    def conversations_list(self, **kwargs):
        return self._answer("conversations_list", kwargs)

    def conversations_history(self, **kwargs):
        return self._answer("conversations_history", kwargs)

    def conversations_replies(self, **kwargs):
        return self._answer("conversations_replies", kwargs)

    def users_info(self, **kwargs):
        return self._answer("users_info", kwargs)

    def conversations_open(self, **kwargs):
        return self._answer("conversations_open", kwargs)

    def chat_postMessage(self, **kwargs):  # noqa: N802 – SDK method name
        return self._answer("chat_postMessage", kwargs)

    def views_publish(self, **kwargs):
        return self._answer("views_publish", kwargs)


def _page(key, items, cursor=""):
    return {key: items, "response_metadata": {"next_cursor": cursor}}


# ------------------------------ channel listing -----------------------------


def test_list_joined_channels_paginates_and_filters():
    client = _FakeWebClient(
        conversations_list=[
            _page(
                "channels",
                [
                    {"id": "C1", "name": "general", "is_member": True},
                    {"id": "C2", "name": "random", "is_member": False},
                ],
                cursor="next-1",
            ),
            _page(
                "channels",
                [
                    {"id": "C3", "name": "old", "is_member": True, "is_archived": True},
                    {"id": "C4", "name": "eng", "is_member": True},
                ],
            ),
        ]
    )
    channels = SlackTransport(client=client).list_joined_channels()

    assert channels == [{"id": "C1", "name": "general"}, {"id": "C4", "name": "eng"}]
    first, second = (kwargs for _, kwargs in client.calls)
    assert "cursor" not in first
    assert second["cursor"] == "next-1"
    assert first["exclude_archived"] is True


def test_list_joined_channels_requests_public_channels_by_default():
    client = _FakeWebClient(conversations_list=[_page("channels", [])])
    SlackTransport(client=client).list_joined_channels()

    assert DEFAULT_CHANNEL_TYPES == "public_channel"
    assert client.calls[0][1]["types"] == "public_channel"


def test_list_joined_channels_uses_configured_types():
    client = _FakeWebClient(conversations_list=[_page("channels", [])])
    SlackTransport(client=client, channel_types="public_channel,private_channel").list_joined_channels()
    assert client.calls[0][1]["types"] == "public_channel,private_channel"


def test_missing_scope_surfaces_as_transport_error():
    error = SlackApiError("missing_scope", {"ok": False, "error": "missing_scope"})
    client = _FakeWebClient(conversations_list=[error])

    with pytest.raises(TransportError) as excinfo:
        SlackTransport(client=client).list_joined_channels()
    assert excinfo.value.operation == "conversations.list"


# --------------------------------- history ----------------------------------


def test_fetch_history_forwards_window_and_limit():
    client = _FakeWebClient(conversations_history=[{"messages": [{"ts": "1.0"}]}])
    messages = SlackTransport(client=client).fetch_history("C1", "100.000000", "200.000000", limit=50)

    assert messages == [{"ts": "1.0"}]
    assert client.calls == [
        (
            "conversations_history",
            {
                "channel": "C1",
                "oldest": "100.000000",
                "latest": "200.000000",
                "inclusive": True,
                "limit": 50,
            },
        )
    ]


def test_fetch_replies_follows_cursor():
    client = _FakeWebClient(
        conversations_replies=[
            _page("messages", [{"ts": "1.0"}, {"ts": "1.1"}], cursor="more"),
            _page("messages", [{"ts": "1.2"}]),
        ]
    )
    replies = SlackTransport(client=client).fetch_replies("C1", "1.0")

    assert [m["ts"] for m in replies] == ["1.0", "1.1", "1.2"]
    assert client.calls[1][1] == {"channel": "C1", "ts": "1.0", "cursor": "more"}


def test_network_failure_becomes_transport_error():
    client = _FakeWebClient(conversations_replies=[TimeoutError("read timed out")])
    with pytest.raises(TransportError) as excinfo:
        SlackTransport(client=client).fetch_replies("C1", "1.0")
    assert excinfo.value.operation == "conversations.replies"


# --------------------------------- identity ---------------------------------


def test_fetch_user_profile_maps_blank_names_to_none():
    client = _FakeWebClient(
        users_info=[
            {"user": {"name": "bob", "profile": {"display_name": "", "real_name": "Bob Stone"}}},
            {"user": {"name": "ann", "profile": {"display_name": "Ann"}}},
        ]
    )
    transport = SlackTransport(client=client)

    assert transport.fetch_user_profile("U2") == {
        "display_name": None,
        "real_name": "Bob Stone",
        "handle": "bob",
    }
    assert transport.fetch_user_profile("U1") == {
        "display_name": "Ann",
        "real_name": None,
        "handle": "ann",
    }
    assert client.calls[0] == ("users_info", {"user": "U2"})


# --------------------------------- outbound ---------------------------------


def test_open_direct_channel_returns_id():
    client = _FakeWebClient(conversations_open=[{"channel": {"id": "D1"}}])
    assert SlackTransport(client=client).open_direct_channel("U1") == "D1"
    assert client.calls == [("conversations_open", {"users": "U1"})]


def test_open_direct_channel_without_id_is_an_error():
    client = _FakeWebClient(conversations_open=[{"channel": {}}])
    with pytest.raises(TransportError):
        SlackTransport(client=client).open_direct_channel("U1")


def test_post_and_publish_forward_arguments():
    client = _FakeWebClient(chat_postMessage=[{"ok": True}], views_publish=[{"ok": True}])
    transport = SlackTransport(client=client)

    transport.post_message("D1", "report")
    transport.publish_home("U1", {"type": "home", "blocks": []})

    assert client.calls == [
        ("chat_postMessage", {"channel": "D1", "text": "report"}),
        ("views_publish", {"user_id": "U1", "view": {"type": "home", "blocks": []}}),
    ]
