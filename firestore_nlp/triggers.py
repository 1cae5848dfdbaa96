"""Change classification and the decision of what a document write requires.

Nothing here performs I/O: the handler turns the returned action into NLP
calls, Firestore writes and BigQuery statements.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from firestore_nlp.config import HandlerConfig
from firestore_nlp.types import ChangeEvent, ChangeType, DocumentSnapshot


class SkipReason(Enum):
    INVALID_CONFIG = "invalid_config"
    DOCUMENT_DELETED = "document_deleted"
    NO_INPUT = "no_input"
    INPUT_UNCHANGED = "input_unchanged"


@dataclass(frozen=True)
class Skip:
    reason: SkipReason
    message: str = ""
    purge_warehouse: bool = False


@dataclass(frozen=True)
class DeleteOutput:
    pass


@dataclass(frozen=True)
class Run:
    input_text: str


Action = Skip | DeleteOutput | Run


def get_change_type(event: ChangeEvent) -> ChangeType:
    """Determines the type of change (CREATE, DELETE, UPDATE) of a write event."""
    if not event.after.exists:
        return ChangeType.DELETE
    if not event.before.exists:
        return ChangeType.CREATE
    return ChangeType.UPDATE


def _is_subfield(field: str, parent: str) -> bool:
    return field.startswith(parent + ".")


def check_field_paths(input_field: str, output_field: str) -> str | None:
    """Return an error message when the input/output field pair is unusable."""
    if input_field == output_field:
        return (
            f"Input field name '{input_field}' and output field name "
            f"'{output_field}' must be different."
        )
    if _is_subfield(input_field, output_field):
        return (
            f"Input field name '{input_field}' cannot be a subfield of "
            f"output field name '{output_field}'; they must be different."
        )
    if _is_subfield(output_field, input_field):
        return (
            f"Output field name '{output_field}' cannot be a subfield of "
            f"input field name '{input_field}'; they must be different."
        )
    return None


def decide_action(
    change_type: ChangeType,
    before: DocumentSnapshot,
    after: DocumentSnapshot,
    cfg: HandlerConfig,
) -> Action:
    error = check_field_paths(cfg.input_field, cfg.output_field)
    if error is not None:
        return Skip(SkipReason.INVALID_CONFIG, error)

    field = cfg.input_field

    if change_type is ChangeType.DELETE:
        return Skip(SkipReason.DOCUMENT_DELETED, "Document was deleted", purge_warehouse=True)

    if change_type is ChangeType.CREATE:
        if not after.contains(field):
            return Skip(SkipReason.NO_INPUT, f"No input field '{field}' in new document")
        return Run(after.get(field))

    had_input = before.contains(field)
    has_input = after.contains(field)

    if not had_input and not has_input:
        return Skip(SkipReason.NO_INPUT, f"No input field '{field}' exists before or after update")
    if had_input and not has_input:
        return DeleteOutput()
    if had_input and before.get(field) == after.get(field):
        return Skip(SkipReason.INPUT_UNCHANGED, f"Input field '{field}' did not change")
    return Run(after.get(field))
