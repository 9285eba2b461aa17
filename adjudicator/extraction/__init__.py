"""Adjudicator Extraction Layer — claim rows and supporting documents.

- ``parse_claims``: positional parsing of the claims CSV export
- ``DocumentStore`` / ``FilesystemDocumentStore``: per-claim document lookup
- ``attach_documents``: concurrent document resolution for a batch of claims
"""

from adjudicator.extraction.csv_parser import parse_claims
from adjudicator.extraction.documents import (
    DocumentStore,
    FilesystemDocumentStore,
    attach_documents,
)

__all__ = [
    "DocumentStore",
    "FilesystemDocumentStore",
    "attach_documents",
    "parse_claims",
]
