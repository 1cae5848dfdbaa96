"""Unit tests for AnnotationHandler with mocked provider, writer and mirror."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from firestore_nlp.firestore import DELETE_FIELD
from firestore_nlp.handler import AnnotationHandler
from firestore_nlp.types import ChangeEvent


@pytest.fixture
def mirror() -> MagicMock:
    m = MagicMock()
    m.write_nlp_data = AsyncMock(return_value=None)
    m.delete_nlp_data = AsyncMock(return_value=None)
    return m


@pytest.fixture
def make_handler(base_config, provider, writer, mirror):
    def _make(cfg=None, *, with_mirror: bool = True) -> AnnotationHandler:
        return AnnotationHandler(
            cfg=cfg or base_config,
            provider=provider,
            writer=writer,
            mirror=mirror if with_mirror else None,
        )

    return _make


def _created(make_snapshot, data, path="trips/id1") -> ChangeEvent:
    return ChangeEvent(before=make_snapshot(exists=False, path=path), after=make_snapshot(data, path=path))


def _updated(make_snapshot, before, after, path="trips/id1") -> ChangeEvent:
    return ChangeEvent(before=make_snapshot(before, path=path), after=make_snapshot(after, path=path))


class TestRun:
    async def test_create_writes_all_outputs(self, make_handler, make_snapshot, writer, mirror, caplog):
        handler = make_handler()

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            outcome = await handler.handle(_created(make_snapshot, {"input": "Good trip"}))

        assert outcome.action == "run"
        assert outcome.failed_tasks == ()
        writer.update.assert_awaited_once_with(
            "trips/id1",
            "inputNLP",
            {
                "SENTIMENT": {"score": 0.75, "magnitude": 0.9},
                "CLASSIFICATION": ["/Internet & Telecom/Mobile & Wireless"],
                "ENTITY": {"LOCATION": ["Paris"], "EVENT": ["World cup"]},
            },
        )
        mirror.write_nlp_data.assert_awaited_once()
        _, collection_path, doc_id = mirror.write_nlp_data.call_args.args
        assert (collection_path, doc_id) == ("trips", "id1")
        assert "created" in caplog.text
        assert "Completed processing" in caplog.text

    async def test_sentiment_only(self, make_handler, make_config, make_snapshot, provider, writer):
        handler = make_handler(make_config(tasks=("SENTIMENT",)))

        await handler.handle(_created(make_snapshot, {"input": "Good trip"}))

        writer.update.assert_awaited_once_with(
            "trips/id1", "inputNLP", {"SENTIMENT": {"score": 0.75, "magnitude": 0.9}}
        )
        provider.classify_text.assert_not_awaited()
        provider.extract_entities.assert_not_awaited()

    async def test_empty_outputs_are_written(self, make_handler, make_config, make_snapshot, provider, writer):
        provider.classify_text.return_value = []
        provider.extract_entities.return_value = {}
        handler = make_handler(make_config(tasks=("CLASSIFICATION", "ENTITY")))

        await handler.handle(_created(make_snapshot, {"input": "Short"}))

        writer.update.assert_awaited_once_with(
            "trips/id1", "inputNLP", {"CLASSIFICATION": [], "ENTITY": {}}
        )

    async def test_partial_failure(self, make_handler, make_config, make_snapshot, provider, writer, caplog):
        provider.extract_entities.side_effect = RuntimeError("Entity Extraction Error")
        handler = make_handler(make_config(tasks=("SENTIMENT", "ENTITY")))

        with caplog.at_level(logging.ERROR, logger="firestore_nlp.handler"):
            outcome = await handler.handle(_created(make_snapshot, {"input": "Text"}))

        assert outcome.failed_tasks == ("ENTITY",)
        writer.update.assert_awaited_once_with(
            "trips/id1", "inputNLP", {"SENTIMENT": {"score": 0.75, "magnitude": 0.9}}
        )
        assert "ENTITY" in caplog.text
        assert "Entity Extraction Error" in caplog.text

    async def test_all_failed_writes_empty_mapping(self, make_handler, make_snapshot, provider, writer, mirror):
        provider.analyze_sentiment.side_effect = RuntimeError("a")
        provider.classify_text.side_effect = RuntimeError("b")
        provider.extract_entities.side_effect = RuntimeError("c")
        handler = make_handler()

        outcome = await handler.handle(_created(make_snapshot, {"input": "Text"}))

        assert set(outcome.failed_tasks) == {"SENTIMENT", "CLASSIFICATION", "ENTITY"}
        writer.update.assert_awaited_once_with("trips/id1", "inputNLP", {})
        mirror.write_nlp_data.assert_not_awaited()

    async def test_changed_input_logged(self, make_handler, make_snapshot, writer, caplog):
        handler = make_handler()

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            await handler.handle(_updated(make_snapshot, {"input": "Before"}, {"input": "After"}))

        assert "changed" in caplog.text
        assert writer.update.await_count == 1

    async def test_nested_collection_path(self, make_handler, make_snapshot, mirror):
        handler = make_handler()

        await handler.handle(
            _created(make_snapshot, {"input": "Hi"}, path="users/u1/trips/t9")
        )

        _, collection_path, doc_id = mirror.write_nlp_data.call_args.args
        assert (collection_path, doc_id) == ("users/u1/trips", "t9")

    async def test_without_mirror(self, make_handler, make_snapshot, writer, mirror):
        handler = make_handler(with_mirror=False)

        await handler.handle(_created(make_snapshot, {"input": "Hi"}))

        writer.update.assert_awaited_once()
        mirror.write_nlp_data.assert_not_awaited()

    async def test_mirror_failure_does_not_block_write(self, make_handler, make_snapshot, writer, mirror, caplog):
        mirror.write_nlp_data.side_effect = RuntimeError("bootstrap failed")
        handler = make_handler()

        with caplog.at_level(logging.WARNING, logger="firestore_nlp.handler"):
            outcome = await handler.handle(_created(make_snapshot, {"input": "Hi"}))

        assert outcome.action == "run"
        writer.update.assert_awaited_once()
        assert "bootstrap failed" in caplog.text

    async def test_writer_failure_propagates(self, make_handler, make_snapshot, writer):
        writer.update.side_effect = RuntimeError("permission denied")
        handler = make_handler()

        with pytest.raises(RuntimeError, match="permission denied"):
            await handler.handle(_created(make_snapshot, {"input": "Hi"}))


class TestDeleteOutput:
    async def test_input_removed(self, make_handler, make_snapshot, provider, writer, mirror, caplog):
        handler = make_handler()

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            outcome = await handler.handle(
                _updated(make_snapshot, {"input": "Test"}, {"notInput": "x"})
            )

        assert outcome.action == "delete_output"
        writer.update.assert_awaited_once_with("trips/id1", "inputNLP", DELETE_FIELD)
        mirror.delete_nlp_data.assert_awaited_once_with("trips", "id1")
        provider.analyze_sentiment.assert_not_awaited()
        assert "deleted" in caplog.text


class TestSkip:
    async def test_unchanged_input(self, make_handler, make_snapshot, writer, mirror, caplog):
        handler = make_handler()

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            outcome = await handler.handle(
                _updated(make_snapshot, {"input": "Test"}, {"input": "Test", "x": 1})
            )

        assert outcome.action == "skip"
        assert outcome.reason == "input_unchanged"
        writer.update.assert_not_awaited()
        mirror.delete_nlp_data.assert_not_awaited()
        assert "no processing is needed" in caplog.text

    async def test_no_input_on_create(self, make_handler, make_snapshot, writer, caplog):
        handler = make_handler()

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            outcome = await handler.handle(_created(make_snapshot, {"unrelated": "x"}))

        assert outcome.reason == "no_input"
        writer.update.assert_not_awaited()
        assert "no processing is needed" in caplog.text

    async def test_document_deleted_purges_mirror(self, make_handler, make_snapshot, writer, mirror, caplog):
        handler = make_handler()
        event = ChangeEvent(before=make_snapshot({"input": "x"}), after=make_snapshot(exists=False))

        with caplog.at_level(logging.INFO, logger="firestore_nlp.handler"):
            outcome = await handler.handle(event)

        assert outcome.reason == "document_deleted"
        writer.update.assert_not_awaited()
        mirror.delete_nlp_data.assert_awaited_once_with("trips", "id1")
        assert "deleted" in caplog.text

    async def test_document_deleted_mirror_failure_logged(self, make_handler, make_snapshot, mirror, caplog):
        mirror.delete_nlp_data.side_effect = RuntimeError("dataset gone")
        handler = make_handler()
        event = ChangeEvent(before=make_snapshot({"input": "x"}), after=make_snapshot(exists=False))

        with caplog.at_level(logging.WARNING, logger="firestore_nlp.handler"):
            outcome = await handler.handle(event)

        assert outcome.action == "skip"
        assert "dataset gone" in caplog.text

    async def test_invalid_config_logs_error(self, make_handler, make_config, make_snapshot, provider, writer, mirror, caplog):
        handler = make_handler(make_config(input_field="input", output_field="input"))

        with caplog.at_level(logging.ERROR, logger="firestore_nlp.handler"):
            outcome = await handler.handle(_created(make_snapshot, {"input": "Hi"}))

        assert outcome.reason == "invalid_config"
        writer.update.assert_not_awaited()
        mirror.delete_nlp_data.assert_not_awaited()
        provider.analyze_sentiment.assert_not_awaited()
        assert "different" in caplog.text
