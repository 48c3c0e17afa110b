import sys
from pathlib import Path

import pytest

# Ensure the repository root (parent directory of this file) is on the import path.
# This allows test modules to do `import isummarize...` even when pytest is executed
# from a sub-directory or when the working directory is not the project root.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from isummarize.errors import TransportError  # noqa: E402
from isummarize.settings import Settings  # noqa: E402


class FakeTransport:
    """In-memory stand-in for :class:`isummarize.connections.slack_client.SlackTransport`.

    Values in ``histories``/``replies``/``profiles`` may be exceptions, which
    are raised as :class:`TransportError` when requested.
    """

    def __init__(self, channels=None, histories=None, replies=None, profiles=None):
        self.channels = channels or []
        self.histories = histories or {}
        self.replies = replies or {}
        self.profiles = profiles or {}
        self.profile_calls: list[str] = []
        self.history_calls: list[tuple] = []
        self.posts: list[tuple[str, str]] = []
        self.published: list[tuple[str, dict]] = []
        self.dm_fails = False
        self.post_fails = False
        self.list_fails = False

    @staticmethod
    def _value(value, operation):
        if isinstance(value, Exception):
            raise TransportError(operation, value)
        return value

    def list_joined_channels(self):
        if self.list_fails:
            raise TransportError("conversations.list", "boom")
        return list(self.channels)

    def fetch_history(self, channel_id, since, until, limit=100):
        self.history_calls.append((channel_id, since, until, limit))
        return list(self._value(self.histories.get(channel_id, []), "conversations.history"))

    def fetch_replies(self, channel_id, root_timestamp):
        value = self.replies.get((channel_id, root_timestamp), [])
        return list(self._value(value, "conversations.replies"))

    def fetch_user_profile(self, user_id):
        self.profile_calls.append(user_id)
        if user_id not in self.profiles:
            raise TransportError("users.info", "user_not_found")
        return self._value(self.profiles[user_id], "users.info")

    def open_direct_channel(self, user_id):
        if self.dm_fails:
            raise TransportError("conversations.open", "boom")
        return f"D-{user_id}"

    def post_message(self, channel_id, text):
        if self.post_fails:
            raise TransportError("chat.postMessage", "boom")
        self.posts.append((channel_id, text))

    def publish_home(self, user_id, view):
        self.published.append((user_id, view))


def profile(display_name=None, real_name=None, handle=None):
    return {"display_name": display_name, "real_name": real_name, "handle": handle}


@pytest.fixture
def fake_transport():
    return FakeTransport(
        channels=[{"id": "C1", "name": "general"}],
        profiles={"U1": profile("Ann"), "U2": profile(None, "Bob Stone", "bob")},
    )


@pytest.fixture
def settings():
    return Settings(
        slack_bot_token="xoxb-test",
        openai_api_key="sk-test",
        archive_url="https://example.slack.com/archives",
    )
