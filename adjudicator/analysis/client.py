"""Claude client — Files API uploads and file-grounded message calls.

Wraps the Anthropic ``AsyncAnthropic`` beta endpoints with:
  - Document upload / delete through the Files API.
  - Message calls that attach uploaded files as ``document`` (or ``image``)
    content blocks.
  - Automatic retry with exponential back-off via tenacity for transport
    errors.  Bad model output is the caller's concern and is never retried.
  - Token usage tracking for cost monitoring.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from anthropic import AsyncAnthropic, APIConnectionError, RateLimitError
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from adjudicator.config import settings
from adjudicator.schemas import ClaudeFile

logger = logging.getLogger(__name__)

# ── Retry configuration ────────────────────────────────────────────────────

_RETRY_EXCEPTIONS = (RateLimitError, APIConnectionError)

_retry_policy = dict(
    retry=retry_if_exception_type(_RETRY_EXCEPTIONS),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=2, min=2, max=60),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

# ── Cost constants (USD per million tokens, Claude Sonnet 4.5) ─────────────

_INPUT_COST_PER_M_TOKENS = 3.00
_OUTPUT_COST_PER_M_TOKENS = 15.00

# ── MIME types ─────────────────────────────────────────────────────────────

_MIME_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "txt": "text/plain",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_DEFAULT_MIME_TYPE = "application/octet-stream"


def mime_type_for(path: str | Path) -> str:
    """Return the MIME type for a document path based on its extension."""
    suffix = Path(path).suffix.lower().lstrip(".")
    return _MIME_TYPES.get(suffix, _DEFAULT_MIME_TYPE)


class ModelReply(BaseModel):
    """Text of a model response plus the reason generation stopped."""

    text: str
    stop_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason == "max_tokens"


def _file_block(handle: ClaudeFile) -> dict[str, Any]:
    block_type = "image" if handle.mime_type.startswith("image/") else "document"
    return {"type": block_type, "source": {"type": "file", "file_id": handle.id}}


class ClaudeClient:
    """Async client for the Anthropic Files and Messages beta APIs.

    Uses ``settings.anthropic_model`` for every message call and tracks
    cumulative token usage for cost reporting.  All network methods retry on
    rate limits and connection errors.

    Args:
        api_key: Anthropic API key.  Defaults to ``settings.anthropic_api_key``.
        client: Pre-built ``AsyncAnthropic`` instance (tests inject a mock).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        self._client = client or AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)
        self._model = settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens
        self._betas = [settings.anthropic_files_beta]
        self.total_input_tokens: int = 0
        self.total_output_tokens: int = 0
        self.total_calls: int = 0

    # ── Files ──────────────────────────────────────────────────────────────

    @retry(**_retry_policy)
    async def upload_file(self, path: str | Path) -> ClaudeFile:
        """Upload a local document and return its file handle.

        Args:
            path: Path to the document on disk.

        Returns:
            The :class:`ClaudeFile` metadata returned by the Files API.
        """
        path = Path(path)
        content = await asyncio.to_thread(path.read_bytes)
        uploaded = await self._client.beta.files.upload(
            file=(path.name, content, mime_type_for(path)),
            betas=self._betas,
        )
        logger.debug("Uploaded %s as %s (%d bytes)", path.name, uploaded.id, len(content))
        return ClaudeFile.model_validate(uploaded.model_dump())

    @retry(**_retry_policy)
    async def delete_file(self, file_id: str) -> None:
        await self._client.beta.files.delete(file_id, betas=self._betas)

    # ── Messages ───────────────────────────────────────────────────────────

    @retry(**_retry_policy)
    async def complete(self, prompt: str, files: Sequence[ClaudeFile]) -> ModelReply:
        """Send a prompt with the given uploaded files attached.

        Args:
            prompt: User prompt text.
            files: File handles to attach after the prompt, in order.

        Returns:
            :class:`ModelReply` with the concatenated text blocks of the
            response and its ``stop_reason``.
        """
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        content.extend(_file_block(f) for f in files)

        response = await self._client.beta.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[{"role": "user", "content": content}],
            betas=self._betas,
        )
        self._track_usage(response)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return ModelReply(text=text, stop_reason=response.stop_reason)

    # ── Usage tracking ─────────────────────────────────────────────────────

    def _track_usage(self, response: Any) -> None:
        """Accumulate token counts and estimated USD cost from a response."""
        self.total_calls += 1
        if not response.usage:
            return

        input_tokens: int = getattr(response.usage, "input_tokens", 0)
        output_tokens: int = getattr(response.usage, "output_tokens", 0)
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens

        cost = (
            input_tokens * _INPUT_COST_PER_M_TOKENS / 1_000_000
            + output_tokens * _OUTPUT_COST_PER_M_TOKENS / 1_000_000
        )
        logger.debug(
            "Claude call #%d: in=%d out=%d tokens | est. cost=$%.4f",
            self.total_calls,
            input_tokens,
            output_tokens,
            cost,
        )

    @property
    def total_cost_usd(self) -> float:
        """Estimated total USD cost across all calls made by this instance."""
        return (
            self.total_input_tokens * _INPUT_COST_PER_M_TOKENS / 1_000_000
            + self.total_output_tokens * _OUTPUT_COST_PER_M_TOKENS / 1_000_000
        )
