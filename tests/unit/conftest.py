"""Pytest configuration and fixtures for unit and API tests."""
from pathlib import Path

import pytest


# Words the fake embedding model knows; each becomes one vector dimension.
VOCABULARY = ["refund", "membership", "schedule", "class", "parking", "uniform", "payroll"]


class FakeModelClient:
    """In-process stand-in for the model service."""

    def __init__(self, reply: str = "Refunds take five days. (Policies)"):
        self.reply = reply
        self.api_key = "test-key"
        self.embed_calls = []
        self.response_calls = []
        self.fail_embeddings = False

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def vector_for(text: str) -> list:
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY]

    async def embed(self, texts, model=None):
        if self.fail_embeddings:
            raise RuntimeError("embedding service down")
        self.embed_calls.append(list(texts))
        return [self.vector_for(t) for t in texts]

    async def create_response(self, messages, model=None):
        self.response_calls.append(messages)
        return {"output_text": self.reply}

    async def list_models(self):
        return ["gpt-4o-mini", "text-embedding-3-small"]


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def knowledge_dir(tmp_path: Path) -> Path:
    """A knowledge folder with two text documents and some noise."""
    folder = tmp_path / "knowledge"
    folder.mkdir()

    (folder / "Policies.txt").write_text(
        "Refund requests are processed within five days.\n\n"
        "Membership can be paused once per year.",
        encoding="utf-8",
    )
    (folder / "Front Desk.txt").write_text(
        "The class schedule is posted every Monday.\r\n\r\n"
        "Staff parking is behind the building.",
        encoding="utf-8",
    )
    (folder / ".hidden.txt").write_text("refund refund refund", encoding="utf-8")
    (folder / "notes.md").write_text("refund policy draft", encoding="utf-8")
    (folder / "archive").mkdir()

    return folder
