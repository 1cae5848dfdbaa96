"""Cloud Natural Language calls behind a small async provider interface.

The dispatcher only depends on ``NlpProvider``; tests substitute their own
implementation instead of patching the Google client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from google.cloud import language_v1

from firestore_nlp.types import ClassificationOutput, EntityOutput, SentimentOutput

logger = logging.getLogger(__name__)


class NlpProvider(Protocol):
    async def analyze_sentiment(self, text: str) -> SentimentOutput: ...

    async def classify_text(self, text: str) -> ClassificationOutput: ...

    async def extract_entities(self, text: str) -> EntityOutput: ...


class LanguageTaskHandler:
    """NlpProvider backed by ``language_v1.LanguageServiceClient``.

    Entities are kept when their type is in ``entity_types_to_save``; with
    ``save_common_entities`` every extracted entity is kept.
    """

    def __init__(
        self,
        *,
        entity_types_to_save: Iterable[str] = (),
        save_common_entities: bool = False,
        client: language_v1.LanguageServiceClient | None = None,
    ) -> None:
        self._entity_types = frozenset(entity_types_to_save)
        self._save_common = save_common_entities
        self._client = client or language_v1.LanguageServiceClient()

    @staticmethod
    def _document(text: str) -> language_v1.Document:
        return language_v1.Document(content=text, type_=language_v1.Document.Type.PLAIN_TEXT)

    async def analyze_sentiment(self, text: str) -> SentimentOutput:
        resp = await asyncio.to_thread(
            self._client.analyze_sentiment, document=self._document(text)
        )
        sentiment = resp.document_sentiment
        return {"score": sentiment.score, "magnitude": sentiment.magnitude}

    async def classify_text(self, text: str) -> ClassificationOutput:
        resp = await asyncio.to_thread(
            self._client.classify_text, document=self._document(text)
        )
        return [category.name for category in resp.categories]

    async def extract_entities(self, text: str) -> EntityOutput:
        resp = await asyncio.to_thread(
            self._client.analyze_entities, document=self._document(text)
        )

        out: EntityOutput = {}
        for entity in resp.entities:
            entity_type = language_v1.Entity.Type(entity.type_).name
            if not self._keep(entity_type):
                continue
            names = out.setdefault(entity_type, [])
            if entity.name not in names:
                names.append(entity.name)

        logger.debug("Extracted %d entity types", len(out))
        return out

    def _keep(self, entity_type: str) -> bool:
        return self._save_common or entity_type in self._entity_types
