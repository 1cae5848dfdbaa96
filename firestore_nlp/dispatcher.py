"""Concurrent fan-out of NLP tasks and fan-in of their outcomes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence

from firestore_nlp.nlp import NlpProvider
from firestore_nlp.types import (
    AnnotationResult,
    Task,
    TaskFailure,
    TaskOutcome,
    TaskOutput,
    TaskSuccess,
    parse_tasks,
)

logger = logging.getLogger(__name__)


def _task_call(provider: NlpProvider, task: Task) -> Callable[[str], Awaitable[TaskOutput]]:
    if task is Task.SENTIMENT:
        return provider.analyze_sentiment
    if task is Task.CLASSIFICATION:
        return provider.classify_text
    return provider.extract_entities


async def _run_task(
    task: Task, call: Callable[[str], Awaitable[TaskOutput]], text: str
) -> TaskOutcome:
    try:
        output = await call(text)
    except Exception as e:
        return TaskFailure(task=task, error=e)
    return TaskSuccess(task=task, output=output)


async def dispatch_tasks(
    input_text: str, enabled_tasks: Iterable[str], provider: NlpProvider
) -> list[TaskOutcome]:
    """Run every recognized task concurrently; one outcome per task, never raises per task."""
    tasks, unknown = parse_tasks(enabled_tasks)
    for name in unknown:
        logger.info("Unknown task '%s' in configuration, skipping it", name)

    if not tasks:
        return []

    logger.info("Performing NLP tasks: %s", ", ".join(t.value for t in tasks))
    return list(
        await asyncio.gather(
            *(_run_task(task, _task_call(provider, task), input_text) for task in tasks)
        )
    )


def aggregate_outcomes(
    outcomes: Sequence[TaskOutcome],
) -> tuple[AnnotationResult, list[TaskFailure]]:
    """Merge successful outputs keyed by task name; collect failures on the side."""
    result: AnnotationResult = {}
    failures: list[TaskFailure] = []
    for outcome in outcomes:
        if isinstance(outcome, TaskSuccess):
            result[outcome.task.value] = outcome.output
        elif isinstance(outcome, TaskFailure):
            failures.append(outcome)
        else:
            raise TypeError(f"Unexpected task outcome: {outcome!r}")
    return result, failures
