"""Persistence for claims, decisions and pipeline jobs."""

from adjudicator.storage.base import ClaimStore

__all__ = ["ClaimStore"]
