import re
from typing import List

# "12: ", "12| " as produced by build_numbered_content or copied by the model
_LINE_NUMBER_PREFIX = re.compile(r"^\s*\d+\s*[:|] ?")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def count_lines(text: str) -> int:
    """
    Number of lines `text` occupies once written into the buffer.
    The empty string is 0 lines, "X" is 1 and "X\\n" is 2.
    """
    if not text:
        return 0
    return len(normalize_newlines(text).split("\n"))


def strip_line_number(line: str) -> str:
    return _LINE_NUMBER_PREFIX.sub("", line, count=1)


def build_numbered_content(text: str, max_lines: int = 500, edge_lines: int = 100) -> str:
    """
    Prefixes each line with its 1-based number so the model can cite exact
    coordinates. Long documents keep only `edge_lines` at each end.
    """
    lines: List[str] = normalize_newlines(text).split("\n")

    if len(lines) <= max_lines:
        return "\n".join(f"{i + 1}: {line}" for i, line in enumerate(lines))

    head = "\n".join(f"{i + 1}: {line}" for i, line in enumerate(lines[:edge_lines]))
    tail_start = len(lines) - edge_lines
    tail = "\n".join(
        f"{tail_start + i + 1}: {line}" for i, line in enumerate(lines[tail_start:])
    )
    omitted = len(lines) - 2 * edge_lines
    return f"{head}\n\n... [{omitted} lines omitted] ...\n\n{tail}"
