import pytest

from transporter.models import ChatMessage
from transporter.storage import Storage


class StubLLM:
    """Replays canned completions in order; exceptions in the list are raised.

    Once the script runs out, every call returns `default`.
    """

    def __init__(self, replies=None, default='{"message": "Hmm.", "action": "none"}'):
        self.replies = list(replies or [])
        self.default = default
        self.calls: list[list[ChatMessage]] = []

    async def __call__(self, messages: list[ChatMessage]) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def store(tmp_path):
    """Fresh session storage under a per-test directory."""
    return Storage(tmp_path)


@pytest.fixture
def make_llm():
    return StubLLM
