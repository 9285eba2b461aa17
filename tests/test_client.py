"""Tests for the Anthropic client wrapper (SDK mocked)."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from adjudicator.analysis.client import ClaudeClient
from conftest import make_file


@pytest.fixture
def sdk() -> MagicMock:
    """Mock ``AsyncAnthropic`` with async beta endpoints.

    Returns:
        MagicMock: SDK stand-in whose calls can be inspected
    """
    mock = MagicMock()
    mock.beta.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"a": '),
                SimpleNamespace(type="tool_use"),
                SimpleNamespace(type="text", text="1}"),
            ],
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=1_000_000, output_tokens=100_000),
        )
    )
    mock.beta.files.upload = AsyncMock()
    mock.beta.files.delete = AsyncMock()
    return mock


class TestClaudeClient:
    """Test suite for ClaudeClient."""

    @pytest.mark.asyncio
    async def test_complete_attaches_files(self, sdk: MagicMock) -> None:
        """Test that PDFs go as document blocks and images as image blocks."""
        client = ClaudeClient(client=sdk)
        files = [make_file("f1"), make_file("f2", "photo.png", "image/png")]

        reply = await client.complete("Tracking Number: T-1", files)

        assert reply.text == '{"a": 1}'
        assert not reply.truncated
        content = sdk.beta.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "Tracking Number: T-1"}
        assert content[1] == {"type": "document", "source": {"type": "file", "file_id": "f1"}}
        assert content[2]["type"] == "image"

    @pytest.mark.asyncio
    async def test_usage_and_cost(self, sdk: MagicMock) -> None:
        """Test that token usage accumulates into an estimated cost."""
        client = ClaudeClient(client=sdk)

        await client.complete("p", [])
        await client.complete("p", [])

        assert client.total_calls == 2
        assert client.total_input_tokens == 2_000_000
        assert client.total_cost_usd == pytest.approx(2 * 3.00 + 0.2 * 15.00)

    @pytest.mark.asyncio
    async def test_upload_file(self, sdk: MagicMock, tmp_path: Path) -> None:
        """Test that a document is uploaded with its name and MIME type."""
        doc = tmp_path / "lease.pdf"
        doc.write_bytes(b"%PDF-1.7")
        sdk.beta.files.upload.return_value = MagicMock(
            model_dump=lambda: {
                "id": "file_1",
                "type": "file",
                "filename": "lease.pdf",
                "mime_type": "application/pdf",
                "size_bytes": 8,
                "created_at": "2025-01-01T00:00:00Z",
                "downloadable": False,
            }
        )

        handle = await ClaudeClient(client=sdk).upload_file(doc)

        assert handle.id == "file_1"
        assert sdk.beta.files.upload.call_args.kwargs["file"] == (
            "lease.pdf",
            b"%PDF-1.7",
            "application/pdf",
        )

    @pytest.mark.asyncio
    async def test_delete_file(self, sdk: MagicMock) -> None:
        """Test that deletes are passed through with the files beta."""
        await ClaudeClient(client=sdk).delete_file("file_1")

        assert sdk.beta.files.delete.call_args.args == ("file_1",)
