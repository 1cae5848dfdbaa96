"""Environment-variable-driven configuration for the Firestore NLP extension.

Values mirror the extension params: the field pair being watched, the NLP
tasks to run and the optional BigQuery mirror.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# -- Extension ----------------------------------------------------------------
LOCATION: str = os.getenv("LOCATION", "us-central1")
COLLECTION_PATH: str = os.getenv("COLLECTION_PATH", "")

# -- Fields -------------------------------------------------------------------
DEFAULT_INPUT_FIELD: str = "input"
DEFAULT_OUTPUT_FIELD: str = "nlp"
DEFAULT_TASKS: str = "SENTIMENT,CLASSIFICATION,ENTITY"

# -- BigQuery -----------------------------------------------------------------
DEFAULT_DATASET_ID: str = "firestore_nlp"
DEFAULT_TABLES_PREFIX: str = "nlp"

# -- Server -------------------------------------------------------------------
IS_CLOUD_RUN: bool = bool(os.getenv("K_SERVICE"))


@dataclass(frozen=True)
class HandlerConfig:
    # Firestore fields (dot-delimited paths)
    input_field: str
    output_field: str

    # NLP
    tasks: tuple[str, ...]  # raw names, unknown ones are tolerated
    entity_types: frozenset[str]
    save_common_entities: bool

    # BigQuery mirror
    save_big_query: bool
    dataset_id: str
    tables_prefix: str
    big_query_tasks: tuple[str, ...]

    @classmethod
    def from_env(cls) -> HandlerConfig:
        tasks = tuple(_env_csv("TASKS", DEFAULT_TASKS))
        bq_tasks = os.getenv("BIGQUERY_TASKS")
        return cls(
            input_field=os.getenv("INPUT_FIELD_NAME", DEFAULT_INPUT_FIELD).strip(),
            output_field=os.getenv("OUTPUT_FIELD_NAME", DEFAULT_OUTPUT_FIELD).strip(),
            tasks=tasks,
            entity_types=frozenset(_env_csv("ENTITY_TYPES", "")),
            save_common_entities=_env_bool("SAVE_COMMON_ENTITIES", False),
            save_big_query=_env_bool("SAVE_BIG_QUERY", False),
            dataset_id=os.getenv("BIGQUERY_DATASET_ID", DEFAULT_DATASET_ID),
            tables_prefix=os.getenv("BIGQUERY_TABLES_PREFIX", DEFAULT_TABLES_PREFIX),
            big_query_tasks=tuple(_env_csv("BIGQUERY_TASKS", bq_tasks)) if bq_tasks else tasks,
        )
