from __future__ import annotations

import argparse
import asyncio
import json
import logging

from firestore_nlp.bigquery import BigQueryHandler, BigQueryHandlerConfig
from firestore_nlp.cli import build_parser
from firestore_nlp.config import HandlerConfig
from firestore_nlp.dispatcher import aggregate_outcomes, dispatch_tasks
from firestore_nlp.logging_config import setup_logging
from firestore_nlp.nlp import LanguageTaskHandler
from firestore_nlp.types import Task, parse_tasks

logger = logging.getLogger("firestore_nlp.cli")


async def _bootstrap(cfg: HandlerConfig) -> int:
    # every task table is created, whatever BIGQUERY_TASKS says
    handler = BigQueryHandler(
        BigQueryHandlerConfig(
            dataset_id=cfg.dataset_id,
            tables_prefix=cfg.tables_prefix,
            supported_tasks=tuple(Task),
        )
    )
    await handler.bootstrap()
    logger.info("Dataset '%s' ready", cfg.dataset_id)
    return 0


async def _analyze(cfg: HandlerConfig, args: argparse.Namespace) -> int:
    provider = LanguageTaskHandler(
        entity_types_to_save=cfg.entity_types,
        save_common_entities=cfg.save_common_entities,
    )
    tasks = args.task or list(cfg.tasks)
    if not parse_tasks(tasks)[0]:
        logger.error("No known task in %s", tasks)
        return 2

    outcomes = await dispatch_tasks(args.text, tasks, provider)
    result, failures = aggregate_outcomes(outcomes)
    for failure in failures:
        logger.error("Error while performing %s task: %s", failure.task.value, failure.error)

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if not failures else 1


async def _amain() -> int:
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(level=args.log_level.upper())
    cfg = HandlerConfig.from_env()

    if args.command == "bootstrap-warehouse":
        return await _bootstrap(cfg)
    return await _analyze(cfg, args)


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
