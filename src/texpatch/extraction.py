"""
Turns assistant output into line-ranged edits.

Two input shapes are supported:

* fenced blocks (```latex-diff by default) holding hunks of the form::

      @@ -12,2 @@ optional explanation
      -old line 12
      -old line 13
      +new text

  The header carries the start line and the number of consumed lines. `-`
  lines are the consumed text, `+` lines the replacement, lines starting with
  a space are context. Numbers the model copied from numbered context
  (``12: foo``) are stripped from body lines.

* the structured payload of a ``propose_edits`` tool call.

Nothing here raises: malformed or unfinished input yields fewer edits.
"""

import re
from typing import Any, Iterable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from texpatch.exceptions import NoOpEditError
from texpatch.models import Edit, build_edit
from texpatch.utils.text import count_lines, normalize_newlines, strip_line_number

logger = structlog.get_logger(__name__)

DEFAULT_FENCE_LANGUAGE = "latex-diff"

_HUNK_HEADER = re.compile(
    r"^@@\s*-(\d+)(?:,(\d+))?(?:\s+\+\d+(?:,\d+)?)?\s*@@[ \t]*(.*)$"
)


def _fence_pattern(language: str) -> "re.Pattern[str]":
    # Only terminated blocks match; a block still streaming has no closing fence
    return re.compile(
        r"^```" + re.escape(language) + r"[ \t]*\n(.*?)\n```[ \t]*$",
        re.DOTALL | re.MULTILINE,
    )


def find_diff_blocks(text: str, language: str = DEFAULT_FENCE_LANGUAGE) -> List[str]:
    """Returns the bodies of all complete fenced edit blocks."""
    text = normalize_newlines(text or "")
    return [m.group(1) for m in _fence_pattern(language).finditer(text)]


def has_unterminated_block(text: str, language: str = DEFAULT_FENCE_LANGUAGE) -> bool:
    text = normalize_newlines(text or "")
    opened = len(re.findall(r"^```" + re.escape(language) + r"[ \t]*$", text, re.MULTILINE))
    return opened > len(find_diff_blocks(text, language))


def _split_hunks(block: str) -> Iterable[Tuple[str, List[str]]]:
    header: Optional[str] = None
    body: List[str] = []
    for line in block.split("\n"):
        if line.startswith("@@"):
            if header is not None:
                yield header, body
            header, body = line, []
        elif header is not None:
            body.append(line)
        # Anything before the first header (file names, prose) is ignored
    if header is not None:
        yield header, body


def _parse_hunk(header: str, body: List[str]) -> Optional[Edit]:
    match = _HUNK_HEADER.match(header.strip())
    if not match:
        logger.debug("Skipping hunk with invalid header", header=header)
        return None

    header_start = int(match.group(1))
    header_count = int(match.group(2)) if match.group(2) is not None else 1
    explanation = match.group(3).strip() or None

    # Empty lines trailing a hunk may be separators or unprefixed blank context
    body = list(body)
    trailing_blanks = 0
    while body and not body[-1]:
        body.pop()
        trailing_blanks += 1

    ops: List[Tuple[str, str]] = []
    for line in body:
        if not line:
            # Blank context line that lost its leading space
            ops.append((" ", ""))
            continue
        if line.startswith("#") and not ops and explanation is None:
            explanation = line.lstrip("#").strip() or None
            continue
        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue
        if line[0] in "+- ":
            ops.append((line[0], strip_line_number(line[1:])))
        else:
            ops.append((" ", strip_line_number(line)))

    changed = [i for i, (kind, _) in enumerate(ops) if kind != " "]
    if not changed:
        logger.debug("Skipping hunk without changes", header=header)
        return None

    first, last = changed[0], changed[-1]
    leading_context = first
    middle = ops[first:last + 1]

    old_total = sum(1 for kind, _ in ops if kind in " -")
    old_lines = [text for kind, text in middle if kind in " -"]
    new_lines = [text for kind, text in middle if kind in " +"]

    if old_total and not old_total <= header_count <= old_total + trailing_blanks:
        logger.debug(
            "Skipping hunk whose body disagrees with its header",
            header=header, expected=header_count, found=old_total,
        )
        return None

    consumed = len(old_lines) if old_total else header_count
    original_text = "\n".join(old_lines) if old_lines else None

    try:
        return build_edit(
            header_start + leading_context,
            consumed,
            "\n".join(new_lines),
            original_text=original_text,
            explanation=explanation,
        )
    except (NoOpEditError, ValidationError) as e:
        logger.debug("Skipping hunk that builds no edit", header=header, error=str(e))
        return None


def extract_edits(text: str, language: str = DEFAULT_FENCE_LANGUAGE) -> List[Edit]:
    """
    Extracts edits from every complete fenced block in `text`, in order of
    appearance. Each edit gets a fresh id and pending status.
    """
    edits: List[Edit] = []
    for block in find_diff_blocks(text, language):
        for header, body in _split_hunks(block):
            edit = _parse_hunk(header, body)
            if edit is not None:
                edits.append(edit)

    if has_unterminated_block(text, language):
        logger.debug("Ignoring unterminated edit block")

    logger.debug("Extracted edits from text", count=len(edits))
    return edits


def _first_int(*values: Any) -> Optional[int]:
    for value in values:
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None


def _item_to_edit(item: Any) -> Optional[Edit]:
    if not isinstance(item, dict):
        return None

    position = item.get("position") if isinstance(item.get("position"), dict) else {}
    start_line = _first_int(
        position.get("line"), item.get("line"), item.get("startLine"), item.get("start_line")
    )
    if start_line is None or start_line < 1:
        return None

    content = item.get("content")
    if content is None:
        content = item.get("suggested") or ""
    if not isinstance(content, str):
        return None
    content = normalize_newlines(content)

    count = _first_int(item.get("originalLineCount"), item.get("original_line_count"))
    if count is None:
        # Model omitted the span; infer it from the declared operation
        edit_type = str(item.get("editType") or item.get("edit_type") or "").lower()
        if edit_type == "insert":
            count = 0
        elif edit_type in ("delete", "replace"):
            count = max(count_lines(content), 1)
        else:
            count = 1
    if count < 0:
        return None

    original = item.get("original") or item.get("originalText")
    explanation = item.get("explanation")

    try:
        return build_edit(
            start_line,
            count,
            content,
            original_text=original if isinstance(original, str) else None,
            explanation=explanation if isinstance(explanation, str) else None,
        )
    except (NoOpEditError, ValidationError):
        return None


def edits_from_tool_call(payload: Any) -> List[Edit]:
    """
    Converts a `propose_edits` tool payload (a list of edit objects, or a dict
    with an "edits" list) into edits. Items that cannot be read are skipped.
    """
    if isinstance(payload, dict):
        payload = payload.get("edits")
    if not isinstance(payload, list):
        return []

    edits: List[Edit] = []
    for idx, item in enumerate(payload):
        edit = _item_to_edit(item)
        if edit is None:
            logger.debug("Skipping unreadable tool edit", index=idx)
            continue
        edits.append(edit)
    return edits
