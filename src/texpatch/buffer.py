from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence

import structlog

from texpatch.exceptions import OverlappingRangesError, StaleRangeError
from texpatch.models import BufferRange
from texpatch.utils.text import normalize_newlines

logger = structlog.get_logger(__name__)


class DocumentBuffer(ABC):
    """
    The host editor's text model, addressed by 1-based line and column.
    The max column of a line is one past its last character.
    """

    @abstractmethod
    def line_count(self) -> int:
        ...

    @abstractmethod
    def line_max_column(self, line: int) -> int:
        ...

    @abstractmethod
    def line_content(self, line: int) -> str:
        ...

    @abstractmethod
    def apply_edit(self, ranges: Sequence[BufferRange]) -> None:
        """
        Replaces every range with its text as one transaction. Either all
        ranges apply or none do.

        Raises:
            StaleRangeError: a range does not fit the current text
            OverlappingRangesError: two ranges overlap
        """


@dataclass
class _ResolvedRange:
    start: int
    end: int
    text: str
    source: BufferRange


class TextBuffer(DocumentBuffer):
    """
    In-memory buffer over a plain string. Maps (line, column) positions to
    offsets in the joined text, the way the editor model does.
    """

    def __init__(self, text: str = ""):
        self._lines: List[str] = normalize_newlines(text).split("\n")
        self.version = 0

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def line_count(self) -> int:
        return len(self._lines)

    def _check_line(self, line: int) -> None:
        if line < 1 or line > len(self._lines):
            raise StaleRangeError(
                f"Line {line} is out of range (1-{len(self._lines)})",
                {"line": line, "line_count": len(self._lines)},
            )

    def line_max_column(self, line: int) -> int:
        self._check_line(line)
        return len(self._lines[line - 1]) + 1

    def line_content(self, line: int) -> str:
        self._check_line(line)
        return self._lines[line - 1]

    def _offset(self, line: int, column: int) -> int:
        max_column = self.line_max_column(line)
        if column < 1 or column > max_column:
            raise StaleRangeError(
                f"Column {column} is out of range for line {line} (1-{max_column})",
                {"line": line, "column": column, "max_column": max_column},
            )
        return sum(len(text) + 1 for text in self._lines[:line - 1]) + column - 1

    def _resolve(self, rng: BufferRange) -> _ResolvedRange:
        start = self._offset(rng.start_line, rng.start_column)
        end = self._offset(rng.end_line, rng.end_column)
        if end < start:
            raise StaleRangeError(
                "Range end precedes its start",
                {"range": rng.model_dump()},
            )
        return _ResolvedRange(start, end, normalize_newlines(rng.text), rng)

    def apply_edit(self, ranges: Sequence[BufferRange]) -> None:
        # Resolve everything against the untouched text first
        resolved = sorted((self._resolve(r) for r in ranges), key=lambda r: (r.start, r.end))

        for left, right in zip(resolved, resolved[1:]):
            if left.end > right.start:
                raise OverlappingRangesError(
                    "Ranges in one transaction overlap",
                    {"first": left.source.model_dump(), "second": right.source.model_dump()},
                )

        text = self.text
        # Bottom to top so earlier offsets stay valid; stable for equal starts
        for r in reversed(resolved):
            text = text[:r.start] + r.text + text[r.end:]

        self._lines = text.split("\n")
        self.version += 1
        logger.debug("Buffer transaction applied", ranges=len(resolved), version=self.version)
