from typing import List, Optional

import structlog
from diff_match_patch import diff_match_patch

from texpatch.models import Edit, build_edit
from texpatch.utils.text import normalize_newlines

logger = structlog.get_logger(__name__)


def _split(text: str) -> List[str]:
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def generate_edits_from_text(original_text: str, modified_text: str) -> List[Edit]:
    """
    Compares an original document with a rewritten one and returns line-ranged
    edits against the original's line numbers.
    """
    dmp = diff_match_patch()
    original_text = normalize_newlines(original_text)
    modified_text = normalize_newlines(modified_text)

    # 1. Line-mode diff: every line becomes one char, then expand back
    chars1, chars2, line_array = dmp.diff_linesToChars(original_text, modified_text)
    diffs = dmp.diff_main(chars1, chars2, False)
    dmp.diff_charsToLines(diffs, line_array)

    edits: List[Edit] = []

    # 0 = Equal, 1 = Insert, -1 = Delete
    current_line = 1
    pending_delete: Optional[tuple] = None  # (start_line, lines)

    def flush_delete():
        nonlocal pending_delete
        if pending_delete is not None:
            start, lines = pending_delete
            edits.append(build_edit(
                start, len(lines), "",
                original_text="\n".join(lines),
                explanation="Diff: lines deleted",
            ))
            pending_delete = None

    for op, text in diffs:
        lines = _split(text)

        if op == 0:
            flush_delete()
            current_line += len(lines)

        elif op == -1:
            flush_delete()
            pending_delete = (current_line, lines)
            current_line += len(lines)

        elif op == 1:
            if not lines:
                continue

            if pending_delete is not None:
                # DELETE immediately followed by INSERT at the same point is a replacement
                start, deleted = pending_delete
                pending_delete = None
                edits.append(build_edit(
                    start, len(deleted), "\n".join(lines),
                    original_text="\n".join(deleted),
                    explanation="Diff: replacement",
                ))
            elif lines == [""]:
                # A lone blank line has no content to carry
                logger.warning(f"Blank line insertion before line {current_line} ignored")
            else:
                logger.debug(f"Diff insert before line {current_line}: {lines[0][:20]!r}")
                edits.append(build_edit(
                    current_line, 0, "\n".join(lines),
                    explanation="Diff: lines inserted",
                ))

    flush_delete()
    logger.info("Generated edits from text", count=len(edits))
    return edits
