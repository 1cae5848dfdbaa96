"""Writes the merged NLP result (or a field deletion) back to Firestore."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from google.cloud import firestore

logger = logging.getLogger(__name__)

DELETE_FIELD = firestore.DELETE_FIELD


class DocumentWriter(Protocol):
    async def update(self, document_path: str, field_path: str, value: Any) -> None: ...


class FirestoreDocumentWriter:
    """DocumentWriter on top of ``firestore.AsyncClient``.

    ``field_path`` is dot-delimited; the value replaces whatever the field
    held before (no deep merge). Pass ``DELETE_FIELD`` to remove the field.
    """

    def __init__(self, client: firestore.AsyncClient | None = None) -> None:
        self._client = client or firestore.AsyncClient()

    async def update(self, document_path: str, field_path: str, value: Any) -> None:
        doc_ref = self._client.document(document_path)
        transaction = self._client.transaction()

        @firestore.async_transactional
        async def _apply(tx: firestore.AsyncTransaction) -> None:
            tx.update(doc_ref, {field_path: value})

        await _apply(transaction)
        logger.debug("Updated %s field '%s'", document_path, field_path)
