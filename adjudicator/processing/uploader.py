"""Upload claim documents to the Claude Files API."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from adjudicator.analysis.client import mime_type_for
from adjudicator.schemas import ClaimRecord, ClaudeFile, Document

logger = logging.getLogger(__name__)

__all__ = ["DocumentUploader", "FileUploadClient", "mime_type_for"]


class FileUploadClient(Protocol):
    async def upload_file(self, path: Union[str, Path]) -> ClaudeFile:
        ...


class DocumentUploader:
    """Turns a claim's local documents into Claude file handles.

    A claim that already carries handles is never uploaded again, which is
    what makes re-running an upload pass cheap.
    """

    def __init__(self, client: FileUploadClient) -> None:
        self._client = client

    async def _upload_one(self, claim: ClaimRecord, doc: Document) -> Optional[ClaudeFile]:
        try:
            return await self._client.upload_file(doc.path)
        except Exception:
            logger.exception(
                "Failed to upload document %s for claim %s", doc.name, claim.tracking_number
            )
            return None

    async def upload_for(self, claim: ClaimRecord) -> ClaimRecord:
        """Upload every document of ``claim`` concurrently.

        Returns:
            The claim unchanged if it already has handles; otherwise a copy
            whose ``claude_files`` holds one handle per document that uploaded
            successfully (an explicit empty list when there were none).
        """
        if claim.has_uploaded_files:
            return claim
        if not claim.documents:
            return claim.model_copy(update={"claude_files": []})

        uploaded = await asyncio.gather(*(self._upload_one(claim, d) for d in claim.documents))
        files = [f for f in uploaded if f is not None]
        if len(files) < len(claim.documents):
            logger.warning(
                "Claim %s: uploaded %d of %d document(s)",
                claim.tracking_number,
                len(files),
                len(claim.documents),
            )
        return claim.model_copy(update={"claude_files": files})

    async def upload_many(self, claims: list[ClaimRecord]) -> list[ClaimRecord]:
        """Upload claims one after another to stay inside API rate limits.

        A claim whose upload fails outright is passed through unchanged.
        """
        results: list[ClaimRecord] = []
        for i, claim in enumerate(claims, start=1):
            logger.info(
                "[%d/%d] Uploading %d document(s) for claim %s",
                i,
                len(claims),
                len(claim.documents),
                claim.tracking_number,
            )
            try:
                results.append(await self.upload_for(claim))
            except Exception:
                logger.exception("Document upload failed for claim %s", claim.tracking_number)
                results.append(claim)
        return results
