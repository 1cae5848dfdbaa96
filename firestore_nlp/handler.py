"""Per-event orchestration: classify, gate, dispatch, aggregate, persist.

The Firestore update and the BigQuery mirror are independent side effects of
the same aggregated result. Mirror faults are logged and never block or fail
the document write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from firestore_nlp.bigquery import BigQueryHandler
from firestore_nlp.config import HandlerConfig
from firestore_nlp.dispatcher import aggregate_outcomes, dispatch_tasks
from firestore_nlp.firestore import DELETE_FIELD, DocumentWriter
from firestore_nlp.nlp import NlpProvider
from firestore_nlp.triggers import (
    DeleteOutput,
    Run,
    Skip,
    SkipReason,
    decide_action,
    get_change_type,
)
from firestore_nlp.types import AnnotationResult, ChangeEvent, ChangeType

logger = logging.getLogger(__name__)

_CHANGE_LOG = {
    ChangeType.CREATE: "Document was created",
    ChangeType.UPDATE: "Document was updated",
    ChangeType.DELETE: "Document was deleted",
}


@dataclass(frozen=True)
class HandlerOutcome:
    action: str  # run|delete_output|skip
    reason: str | None = None
    failed_tasks: tuple[str, ...] = ()


class AnnotationHandler:
    def __init__(
        self,
        *,
        cfg: HandlerConfig,
        provider: NlpProvider,
        writer: DocumentWriter,
        mirror: BigQueryHandler | None = None,
    ) -> None:
        self._cfg = cfg
        self._provider = provider
        self._writer = writer
        self._mirror = mirror

    async def handle(self, event: ChangeEvent) -> HandlerOutcome:
        change_type = get_change_type(event)
        logger.info("%s: %s", _CHANGE_LOG[change_type], event.path)

        action = decide_action(change_type, event.before, event.after, self._cfg)

        if isinstance(action, Skip):
            return await self._skip(event, action)
        if isinstance(action, DeleteOutput):
            return await self._delete_output(event)
        if isinstance(action, Run):
            return await self._run(event, action)
        raise TypeError(f"Unexpected action: {action!r}")

    async def _skip(self, event: ChangeEvent, action: Skip) -> HandlerOutcome:
        if action.reason is SkipReason.INVALID_CONFIG:
            logger.error(action.message)
            return HandlerOutcome(action="skip", reason=action.reason.value)

        logger.info("%s, no processing is needed", action.message)
        if action.purge_warehouse:
            await self._mirror_delete(event)
        return HandlerOutcome(action="skip", reason=action.reason.value)

    async def _delete_output(self, event: ChangeEvent) -> HandlerOutcome:
        logger.info(
            "Input field '%s' was deleted, deleting output field '%s'",
            self._cfg.input_field,
            self._cfg.output_field,
        )
        await asyncio.gather(
            self._writer.update(event.after.path, self._cfg.output_field, DELETE_FIELD),
            self._mirror_delete(event),
        )
        logger.info("Completed processing of %s", event.path)
        return HandlerOutcome(action="delete_output")

    async def _run(self, event: ChangeEvent, action: Run) -> HandlerOutcome:
        if event.before.exists:
            logger.info("Input field '%s' changed, processing new input", self._cfg.input_field)

        outcomes = await dispatch_tasks(action.input_text, self._cfg.tasks, self._provider)
        result, failures = aggregate_outcomes(outcomes)
        for failure in failures:
            logger.error(
                "Error while performing %s task: %s", failure.task.value, failure.error
            )

        await asyncio.gather(
            self._writer.update(event.after.path, self._cfg.output_field, result),
            self._mirror_write(event, result),
        )
        logger.info("Completed processing of %s", event.path)
        return HandlerOutcome(
            action="run",
            failed_tasks=tuple(f.task.value for f in failures),
        )

    async def _mirror_write(self, event: ChangeEvent, result: AnnotationResult) -> None:
        if self._mirror is None or not result:
            return
        try:
            await self._mirror.write_nlp_data(
                result, event.after.collection_path, event.after.doc_id
            )
        except Exception as e:
            logger.warning("BigQuery mirror write skipped for %s: %s", event.path, e)

    async def _mirror_delete(self, event: ChangeEvent) -> None:
        if self._mirror is None:
            return
        snapshot = event.before if event.before.exists else event.after
        try:
            await self._mirror.delete_nlp_data(snapshot.collection_path, snapshot.doc_id)
        except Exception as e:
            logger.warning("BigQuery mirror delete skipped for %s: %s", event.path, e)
