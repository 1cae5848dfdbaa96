"""Shared test fixtures for the firestore-nlp test suite."""

from __future__ import annotations

from dataclasses import replace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from firestore_nlp.config import HandlerConfig
from firestore_nlp.types import DocumentSnapshot


@pytest.fixture
def base_config() -> HandlerConfig:
    return HandlerConfig(
        input_field="input",
        output_field="inputNLP",
        tasks=("ENTITY", "SENTIMENT", "CLASSIFICATION"),
        entity_types=frozenset({"LOCATION", "EVENT"}),
        save_common_entities=False,
        save_big_query=False,
        dataset_id="firestore_nlp",
        tables_prefix="nlp",
        big_query_tasks=("ENTITY", "SENTIMENT", "CLASSIFICATION"),
    )


@pytest.fixture
def make_config(base_config):
    def _make(**overrides: Any) -> HandlerConfig:
        return replace(base_config, **overrides)

    return _make


@pytest.fixture
def make_snapshot():
    def _make(
        data: dict[str, Any] | None = None,
        *,
        exists: bool = True,
        path: str = "trips/id1",
    ) -> DocumentSnapshot:
        if data is None:
            data = {"input": "I like Paris. I like the Louvre."}
        return DocumentSnapshot(path=path, exists=exists, data=data if exists else {})

    return _make


@pytest.fixture
def provider() -> MagicMock:
    """NlpProvider whose three calls succeed with canned outputs."""
    p = MagicMock()
    p.analyze_sentiment = AsyncMock(return_value={"score": 0.75, "magnitude": 0.9})
    p.classify_text = AsyncMock(return_value=["/Internet & Telecom/Mobile & Wireless"])
    p.extract_entities = AsyncMock(
        return_value={"LOCATION": ["Paris"], "EVENT": ["World cup"]}
    )
    return p


@pytest.fixture
def writer() -> AsyncMock:
    w = AsyncMock()
    w.update = AsyncMock(return_value=None)
    return w
