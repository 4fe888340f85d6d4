from typing import List, Sequence

import pytest

from texpatch.buffer import TextBuffer
from texpatch.config import ReviewSettings
from texpatch.models import BufferRange
from texpatch.review.engine import ReviewSession
from texpatch.review.queue import Notification

SAMPLE_LATEX = "\n".join([
    r"\documentclass{article}",
    r"\usepackage{amsmath}",
    r"\begin{document}",
    r"",
    r"\title{Sample Document}",
    r"\author{Jane Doe}",
    r"\maketitle",
    r"",
    r"\section{Introduction}",
    r"This is a sample LaTeX document for testing purposes.",
    r"",
    r"\end{document}",
])


class RecordingBuffer(TextBuffer):
    """TextBuffer that remembers every transaction it was asked to apply."""

    def __init__(self, text: str = ""):
        super().__init__(text)
        self.calls: List[List[BufferRange]] = []

    def apply_edit(self, ranges: Sequence[BufferRange]) -> None:
        self.calls.append(list(ranges))
        super().apply_edit(ranges)


@pytest.fixture
def sample_latex():
    return SAMPLE_LATEX


@pytest.fixture
def abcd_buffer():
    return RecordingBuffer("A\nB\nC\nD")


@pytest.fixture
def notices():
    return []


@pytest.fixture
def session(notices):
    def notify(notification: Notification):
        notices.append(notification)
    return ReviewSession(ReviewSettings(), notify=notify)


@pytest.fixture
def manual_session(notices):
    """Session that waits for an explicit advance() between batches."""
    def notify(notification: Notification):
        notices.append(notification)
    return ReviewSession(ReviewSettings(auto_advance=False), notify=notify)
