"""Resolve each claim's supporting documents.

Documents live in one folder per tracking number
(``<documents_path>/<tracking_number>/``).  Lookup goes through a small
:class:`DocumentStore` interface so tests and alternative layouts can supply
their own.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from adjudicator.schemas import ClaimRecord, Document

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Lists the documents filed under a tracking number."""

    @abstractmethod
    async def list_documents(self, tracking_number: str) -> list[Document]:
        ...


class FilesystemDocumentStore(DocumentStore):
    """Documents stored as regular files in ``root/<tracking_number>/``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    async def list_documents(self, tracking_number: str) -> list[Document]:
        return await asyncio.to_thread(self._scan, tracking_number)

    def _scan(self, tracking_number: str) -> list[Document]:
        folder = self.root / tracking_number
        # Raises FileNotFoundError / NotADirectoryError for a missing folder.
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
        return [
            Document(name=entry.name, path=str(entry))
            for entry in entries
            if entry.is_file()
        ]


async def _documents_for(claim: ClaimRecord, store: DocumentStore) -> list[Document]:
    try:
        return await store.list_documents(claim.tracking_number)
    except Exception as exc:
        logger.warning(
            "Could not read documents for claim %s: %s", claim.tracking_number, exc
        )
        return []


async def attach_documents(
    claims: list[ClaimRecord],
    store: DocumentStore,
) -> list[ClaimRecord]:
    """Return copies of ``claims`` with their ``documents`` populated.

    Lookups run concurrently.  A failed lookup leaves that claim with no
    documents and does not affect the others.
    """
    found = await asyncio.gather(*(_documents_for(c, store) for c in claims))
    attached = [
        claim.model_copy(update={"documents": docs})
        for claim, docs in zip(claims, found)
    ]
    logger.info(
        "Attached %d document(s) across %d claim(s)",
        sum(len(d) for d in found),
        len(claims),
    )
    return attached
