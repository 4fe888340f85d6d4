from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence

import structlog
from pydantic import BaseModel

from texpatch.buffer import DocumentBuffer
from texpatch.exceptions import DocumentBufferError, EditNotFoundError
from texpatch.models import Edit, EditStatus

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 5


class Notice(str, Enum):
    BATCH_LIMITED = "batch_limited"
    MORE_READY = "more_ready"
    RESOLVED = "resolved"
    CONFLICTS_DROPPED = "conflicts_dropped"


class Notification(BaseModel):
    notice: Notice
    message: str
    count: int = 0


Notifier = Callable[[Notification], None]


def _capture_original(edit: Edit, buffer: DocumentBuffer) -> str:
    if edit.original_line_count == 0:
        return ""
    try:
        return "\n".join(
            buffer.line_content(line) for line in range(edit.start_line, edit.end_line + 1)
        )
    except DocumentBufferError:
        return ""


class EditSet:
    """
    All unresolved edits for one assistant turn, split into a visible batch
    and a backlog. Owns membership and partitioning; coordinates belong to the
    review engine.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        auto_advance: bool = True,
        notify: Optional[Notifier] = None,
    ):
        self.batch_size = batch_size
        self.auto_advance = auto_advance
        self._notify = notify
        self._visible: List[Edit] = []
        self._backlog: List[Edit] = []
        self._more_ready_sent = False
        self._active = False

    def emit(self, notice: Notice, message: str, count: int = 0) -> None:
        logger.debug("Suggestion notice", notice=notice.value, count=count)
        if self._notify is not None:
            self._notify(Notification(notice=notice, message=message, count=count))

    # --- membership -------------------------------------------------------

    def ingest(self, edits: Sequence[Edit], buffer: Optional[DocumentBuffer] = None) -> None:
        """
        Replaces the whole set. Edits are copied and reset to pending; missing
        snapshots of the consumed text are taken from `buffer`.
        """
        if not edits:
            self.clear()
            return

        incoming: List[Edit] = []
        for edit in edits:
            update = {"status": EditStatus.PENDING}
            if edit.original_text is None and buffer is not None:
                update["original_text"] = _capture_original(edit, buffer)
            incoming.append(edit.model_copy(update=update))

        self._visible = incoming[:self.batch_size]
        self._backlog = incoming[self.batch_size:]
        self._more_ready_sent = False
        self._active = True

        logger.info("Ingested edits", visible=len(self._visible), backlog=len(self._backlog))

        if self._backlog:
            self.emit(
                Notice.BATCH_LIMITED,
                f"Showing the first {len(self._visible)} of {len(incoming)} suggestions. "
                "Continue when you are ready to review more.",
                len(incoming),
            )

    def clear(self) -> None:
        self._visible = []
        self._backlog = []
        self._more_ready_sent = False
        self._active = False

    def visible_batch(self) -> List[Edit]:
        return list(self._visible)

    def backlog(self) -> List[Edit]:
        return list(self._backlog)

    def pending_count(self) -> int:
        return sum(1 for e in self._visible if e.is_pending) + sum(
            1 for e in self._backlog if e.is_pending
        )

    @property
    def is_resolved(self) -> bool:
        return self.pending_count() == 0

    def get(self, edit_id: str) -> Edit:
        for edit in self._visible:
            if edit.id == edit_id:
                return edit
        for edit in self._backlog:
            if edit.id == edit_id:
                return edit
        raise EditNotFoundError(f"No edit with id {edit_id!r} in the current set")

    def pending_edits(self) -> List[Edit]:
        """Pending edits of the visible batch followed by the backlog."""
        return [e for e in self._visible if e.is_pending] + [e for e in self._backlog if e.is_pending]

    def discard(self, edit_ids: Iterable[str]) -> None:
        ids = set(edit_ids)
        if not ids:
            return
        self._visible = [e for e in self._visible if e.id not in ids]
        self._backlog = [e for e in self._backlog if e.id not in ids]

    def remove(self, edit_id: str) -> Edit:
        edit = self.get(edit_id)
        self.discard([edit_id])
        return edit

    def drain(self) -> None:
        """Forgets every edit after an accept-all; the set is then resolved."""
        self._visible = []
        self._backlog = []
        self.settle()

    # --- batching ---------------------------------------------------------

    def advance(self) -> bool:
        """
        Promotes the next batch from the backlog. Does nothing while the
        visible batch still has pending edits or when the backlog is empty.
        """
        if any(e.is_pending for e in self._visible):
            return False

        if not self._backlog:
            return False

        next_batch = self._backlog[:self.batch_size]
        self._backlog = self._backlog[self.batch_size:]
        for edit in next_batch:
            edit.status = EditStatus.PENDING
        self._visible = next_batch
        self._more_ready_sent = False
        self._active = True

        logger.info("Advanced to next batch", visible=len(self._visible), backlog=len(self._backlog))
        return True

    def settle(self) -> None:
        """Called after every resolution; announces or promotes the next batch."""
        if any(e.is_pending for e in self._visible):
            return

        if self._backlog:
            if not self._more_ready_sent:
                self._more_ready_sent = True
                self.emit(
                    Notice.MORE_READY,
                    "More suggestions are ready. Continue when you want to review the next batch.",
                    len(self._backlog),
                )
            if self.auto_advance:
                self.advance()
            return

        if self._active:
            self._active = False
            self._more_ready_sent = False
            self.emit(Notice.RESOLVED, "All suggestions have been reviewed.")
