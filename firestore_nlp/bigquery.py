"""BigQuery mirror of successful NLP results.

One dataset, one table per task kind. Rows carry the Firestore collection
path and document id of the annotated document plus a timestamp shared by
every row produced from the same write. Writes and deletes are best-effort:
a failing statement is logged and its siblings still run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from google.api_core.exceptions import NotFound
from google.cloud import bigquery

from firestore_nlp.types import (
    ClassificationOutput,
    EntityOutput,
    SentimentOutput,
    Task,
)

logger = logging.getLogger(__name__)

_COMMON_HEAD = (
    bigquery.SchemaField("collection_path", "STRING"),
    bigquery.SchemaField("doc_id", "STRING"),
)
_TIMESTAMP = bigquery.SchemaField("timestamp", "TIMESTAMP")

TABLE_SCHEMAS: dict[Task, list[bigquery.SchemaField]] = {
    Task.SENTIMENT: [
        *_COMMON_HEAD,
        bigquery.SchemaField("score", "FLOAT"),
        bigquery.SchemaField("magnitude", "FLOAT"),
        _TIMESTAMP,
    ],
    Task.CLASSIFICATION: [
        *_COMMON_HEAD,
        bigquery.SchemaField("class", "STRING"),
        _TIMESTAMP,
    ],
    Task.ENTITY: [
        *_COMMON_HEAD,
        bigquery.SchemaField("entity_name", "STRING"),
        bigquery.SchemaField("entity_type", "STRING"),
        _TIMESTAMP,
    ],
}


class MirrorState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class BigQueryHandlerConfig:
    dataset_id: str
    tables_prefix: str
    supported_tasks: tuple[Task, ...]


@dataclass(frozen=True)
class Statement:
    sql: str
    params: list[bigquery.ScalarQueryParameter] = field(default_factory=list)


class BigQueryHandler:
    """Lazily provisions the dataset/tables, then mirrors NLP rows."""

    def __init__(
        self, cfg: BigQueryHandlerConfig, *, client: bigquery.Client | None = None
    ) -> None:
        self._cfg = cfg
        self._client = client or bigquery.Client()
        self._state = MirrorState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    @property
    def state(self) -> MirrorState:
        return self._state

    def table_id(self, task: Task) -> str:
        return f"{self._cfg.tables_prefix}_{task.value}"

    def _qualified(self, task: Task) -> str:
        return f"`{self._cfg.dataset_id}.{self.table_id(task)}`"

    # -- Bootstrap ------------------------------------------------------------

    async def bootstrap(self) -> None:
        """Ensure dataset and all task tables exist. Safe under concurrent callers."""
        if self._state is MirrorState.READY:
            return

        async with self._init_lock:
            if self._state is MirrorState.READY:
                return

            logger.info("Initializing BigQuery dataset '%s'", self._cfg.dataset_id)
            self._state = MirrorState.INITIALIZING
            try:
                await asyncio.to_thread(self._init_dataset)
                for task in Task:
                    await asyncio.to_thread(self._init_table, task)
            except Exception:
                self._state = MirrorState.UNINITIALIZED
                raise

            self._state = MirrorState.READY
            logger.info("BigQuery dataset and tables ready")

    def _init_dataset(self) -> None:
        try:
            self._client.get_dataset(self._cfg.dataset_id)
        except NotFound:
            logger.info("Creating BigQuery dataset '%s'", self._cfg.dataset_id)
            self._client.create_dataset(self._cfg.dataset_id, exists_ok=True)

    def _init_table(self, task: Task) -> None:
        table_ref = f"{self._client.project}.{self._cfg.dataset_id}.{self.table_id(task)}"
        try:
            self._client.get_table(table_ref)
        except NotFound:
            logger.info("Creating BigQuery table '%s'", table_ref)
            table = bigquery.Table(table_ref, schema=TABLE_SCHEMAS[task])
            self._client.create_table(table, exists_ok=True)

    async def _ensure_ready(self) -> None:
        try:
            await self.bootstrap()
        except Exception:
            logger.exception("Error initializing BigQuery handler")
            raise

    # -- Writes ---------------------------------------------------------------

    async def write_nlp_data(
        self, data: Mapping[str, Any], collection_path: str, doc_id: str
    ) -> None:
        await self._ensure_ready()

        logger.info("Writing NLP data to BigQuery for %s/%s", collection_path, doc_id)
        timestamp = datetime.now(UTC)

        statements: list[Statement] = []
        for key, output in data.items():
            try:
                task = Task(key)
            except ValueError:
                logger.warning("Not mirroring unknown task '%s'", key)
                continue
            if task not in self._cfg.supported_tasks:
                continue
            stmt = self.build_insert(task, output, collection_path, doc_id, timestamp)
            if stmt is not None:
                statements.append(stmt)

        await self._execute_all(statements)
        logger.info("Completed writing NLP data to BigQuery")

    def build_insert(
        self,
        task: Task,
        output: Any,
        collection_path: str,
        doc_id: str,
        timestamp: datetime,
    ) -> Statement | None:
        if task is Task.SENTIMENT:
            return self._sentiment_insert(output, collection_path, doc_id, timestamp)
        if task is Task.CLASSIFICATION:
            return self._classification_insert(output, collection_path, doc_id, timestamp)
        return self._entity_insert(output, collection_path, doc_id, timestamp)

    @staticmethod
    def _base_params(
        collection_path: str, doc_id: str, timestamp: datetime
    ) -> list[bigquery.ScalarQueryParameter]:
        return [
            bigquery.ScalarQueryParameter("collection_path", "STRING", collection_path),
            bigquery.ScalarQueryParameter("doc_id", "STRING", doc_id),
            bigquery.ScalarQueryParameter("timestamp", "TIMESTAMP", timestamp),
        ]

    def _sentiment_insert(
        self, data: SentimentOutput, collection_path: str, doc_id: str, timestamp: datetime
    ) -> Statement:
        sql = (
            f"INSERT INTO {self._qualified(Task.SENTIMENT)} "
            "(collection_path, doc_id, score, magnitude, timestamp) "
            "VALUES (@collection_path, @doc_id, @score, @magnitude, @timestamp)"
        )
        params = self._base_params(collection_path, doc_id, timestamp)
        params.append(bigquery.ScalarQueryParameter("score", "FLOAT64", data["score"]))
        params.append(bigquery.ScalarQueryParameter("magnitude", "FLOAT64", data["magnitude"]))
        return Statement(sql, params)

    def _classification_insert(
        self, data: ClassificationOutput, collection_path: str, doc_id: str, timestamp: datetime
    ) -> Statement | None:
        if not data:
            return None

        params = self._base_params(collection_path, doc_id, timestamp)
        rows: list[str] = []
        for i, class_name in enumerate(data):
            rows.append(f"(@collection_path, @doc_id, @class_{i}, @timestamp)")
            params.append(bigquery.ScalarQueryParameter(f"class_{i}", "STRING", class_name))

        sql = (
            f"INSERT INTO {self._qualified(Task.CLASSIFICATION)} "
            "(collection_path, doc_id, class, timestamp) "
            f"VALUES {', '.join(rows)}"
        )
        return Statement(sql, params)

    def _entity_insert(
        self, data: EntityOutput, collection_path: str, doc_id: str, timestamp: datetime
    ) -> Statement | None:
        params = self._base_params(collection_path, doc_id, timestamp)
        rows: list[str] = []
        i = 0
        for entity_type, names in data.items():
            for name in names:
                rows.append(
                    f"(@collection_path, @doc_id, @entity_name_{i}, @entity_type_{i}, @timestamp)"
                )
                params.append(bigquery.ScalarQueryParameter(f"entity_name_{i}", "STRING", name))
                params.append(
                    bigquery.ScalarQueryParameter(f"entity_type_{i}", "STRING", entity_type)
                )
                i += 1

        if not rows:
            return None

        sql = (
            f"INSERT INTO {self._qualified(Task.ENTITY)} "
            "(collection_path, doc_id, entity_name, entity_type, timestamp) "
            f"VALUES {', '.join(rows)}"
        )
        return Statement(sql, params)

    # -- Deletes --------------------------------------------------------------

    async def delete_nlp_data(self, collection_path: str, doc_id: str) -> None:
        await self._ensure_ready()

        statements = [
            self.build_delete(task, collection_path, doc_id)
            for task in self._cfg.supported_tasks
        ]
        await self._execute_all(statements)
        logger.info("Completed deleting NLP data in BigQuery for %s/%s", collection_path, doc_id)

    def build_delete(self, task: Task, collection_path: str, doc_id: str) -> Statement:
        sql = (
            f"DELETE FROM {self._qualified(task)} "
            "WHERE (collection_path = @collection_path AND doc_id = @doc_id)"
        )
        return Statement(
            sql,
            [
                bigquery.ScalarQueryParameter("collection_path", "STRING", collection_path),
                bigquery.ScalarQueryParameter("doc_id", "STRING", doc_id),
            ],
        )

    # -- Execution ------------------------------------------------------------

    async def _execute_all(self, statements: Iterable[Statement]) -> None:
        await asyncio.gather(*(self._perform_query(s) for s in statements))

    async def _perform_query(self, stmt: Statement) -> None:
        try:
            await asyncio.to_thread(self._run_query, stmt)
        except Exception:
            logger.exception("Error performing BigQuery query: %s", stmt.sql)

    def _run_query(self, stmt: Statement) -> None:
        job_config = bigquery.QueryJobConfig(query_parameters=stmt.params)
        self._client.query(stmt.sql, job_config=job_config).result()

