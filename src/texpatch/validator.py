from typing import Optional, Sequence

import structlog

from texpatch.buffer import DocumentBuffer
from texpatch.exceptions import NoOpEditError
from texpatch.models import Edit, EditKind, Intent, ValidationResult, derive_kind

logger = structlog.get_logger(__name__)

_KIND_LABELS = {
    EditKind.INSERT: "Insertion",
    EditKind.DELETE: "Deletion",
    EditKind.REPLACE: "Replacement",
}


def validate_edits(
    edits: Sequence[Edit],
    intent: Intent,
    buffer: Optional[DocumentBuffer] = None,
) -> ValidationResult:
    """
    Drops every edit whose kind the intent does not permit.

    The kind is re-derived from line count and content. Coordinates are not
    checked here; an out-of-range edit fails later, when it is applied.
    `buffer` is accepted for callers that hold one but is never touched.
    """
    result = ValidationResult()

    for edit in edits:
        try:
            kind = derive_kind(edit.original_line_count, edit.content)
        except NoOpEditError:
            result.violations.append(f"Empty edit at line {edit.start_line} ignored.")
            continue

        if not intent.allows(kind):
            result.violations.append(
                f"{_KIND_LABELS[kind]} not allowed by inferred intent at line {edit.start_line}."
            )
            continue

        result.accepted.append(edit)

    if result.violations:
        logger.info(
            "Edits blocked by intent",
            accepted=len(result.accepted),
            blocked=len(result.violations),
        )
    return result
