"""
Exceptions raised by data-store adapters.

Engines never raise for bad data; they degrade to flagged issues or
defaults. These exceptions describe collaborator failures only; the
service facade decides whether to propagate or absorb them.
"""

from __future__ import annotations


class StoreError(Exception):
    """A data-store collaborator could not satisfy a request."""


class StoreNotFoundError(StoreError):
    """The requested store id is not known to the data store."""

    def __init__(self, store_id: str) -> None:
        super().__init__(f"Unknown store: {store_id!r}")
        self.store_id = store_id
