from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from texpatch.buffer import DocumentBuffer
from texpatch.config import ReviewSettings
from texpatch.exceptions import (
    BufferUnavailableError,
    DocumentBufferError,
    EditApplicationError,
    EditNotPendingError,
    ReentrantAcceptError,
)
from texpatch.models import (
    AcceptResult,
    BufferRange,
    DeleteEdit,
    Edit,
    EditStatus,
    InsertEdit,
    ReplaceEdit,
    build_edit,
)
from texpatch.review.queue import EditSet, Notice, Notifier
from texpatch.utils.text import count_lines

logger = structlog.get_logger(__name__)


def resolve_range(edit: Edit, buffer: DocumentBuffer) -> BufferRange:
    """
    The range an edit covers in the current buffer. Insertions anchor at
    column 1 of their start line; other kinds run to the end of their last line.
    """
    if isinstance(edit, InsertEdit):
        return BufferRange(
            start_line=edit.start_line, start_column=1,
            end_line=edit.start_line, end_column=1,
            text=edit.content,
        )
    if isinstance(edit, (DeleteEdit, ReplaceEdit)):
        end_line = edit.end_line
        return BufferRange(
            start_line=edit.start_line, start_column=1,
            end_line=end_line, end_column=buffer.line_max_column(end_line),
            text=edit.content,
        )
    raise TypeError(f"Unsupported edit type: {type(edit).__name__}")


def transaction_range(edit: Edit, buffer: DocumentBuffer) -> BufferRange:
    """
    The range actually sent to the buffer. Inserted lines are terminated so
    they land before the anchor line, and deletions swallow one line break
    so whole lines disappear.
    """
    line_count = buffer.line_count()

    if isinstance(edit, InsertEdit):
        if line_count == 1 and buffer.line_max_column(1) == 1 and edit.start_line <= 2:
            # An empty buffer holds no lines; its content is written as is
            return BufferRange(
                start_line=1, start_column=1, end_line=1, end_column=1, text=edit.content,
            )
        if edit.start_line == line_count + 1:
            # Appending after the last line
            column = buffer.line_max_column(line_count)
            return BufferRange(
                start_line=line_count, start_column=column,
                end_line=line_count, end_column=column,
                text="\n" + edit.content,
            )
        return resolve_range(edit, buffer).model_copy(update={"text": edit.content + "\n"})

    anchor = resolve_range(edit, buffer)

    if isinstance(edit, DeleteEdit):
        if anchor.end_line < line_count:
            return anchor.model_copy(update={"end_line": anchor.end_line + 1, "end_column": 1})
        if anchor.start_line > 1:
            previous = anchor.start_line - 1
            return anchor.model_copy(
                update={"start_line": previous, "start_column": buffer.line_max_column(previous)}
            )

    return anchor


def ranges_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return not (a_end < b_start or a_start > b_end)


def _joins_group(candidate: Edit, group: List[Edit]) -> bool:
    # Groups grow upwards: candidates arrive bottom to top
    head, top = group[0], group[-1]
    if isinstance(candidate, InsertEdit) and isinstance(head, InsertEdit):
        return candidate.start_line == head.start_line
    if isinstance(candidate, DeleteEdit) and isinstance(head, DeleteEdit):
        return candidate.end_line + 1 == top.start_line
    return False


def _group_span(group: List[Edit]) -> Tuple[int, int]:
    return group[-1].start_line, group[0].end_line


def _group_target(group: List[Edit]) -> Edit:
    """The single edit a group is applied as."""
    if len(group) == 1:
        return group[0]
    if isinstance(group[0], InsertEdit):
        return build_edit(group[0].start_line, 0, "\n".join(e.content for e in group))
    start, end = _group_span(group)
    return build_edit(start, end - start + 1, "")


def plan_rebase(
    accepted: Edit,
    delta_lines: int,
    others: Sequence[Edit],
) -> Tuple[Dict[str, int], List[Edit]]:
    """
    Works out where every other pending edit moves once `accepted` is applied.

    Each edit is judged from its own coordinates before this acceptance.
    Returns the new start line per shifted edit id and the edits that now
    conflict and must be dropped.
    """
    accepted_start = accepted.start_line
    accepted_end = accepted.end_line
    accepted_is_insert = accepted.original_line_count == 0

    shifts: Dict[str, int] = {}
    dropped: List[Edit] = []

    for other in others:
        if other.id == accepted.id:
            continue
        start, end = other.start_line, other.end_line

        if ranges_overlap(start, end, accepted_start, accepted_end):
            # Two insertions at the same anchor stack instead of conflicting
            if accepted_is_insert and other.original_line_count == 0 and start == accepted_start:
                if delta_lines:
                    shifts[other.id] = start + delta_lines
                continue
            dropped.append(other)
            continue

        if start > accepted_end and delta_lines:
            shifts[other.id] = start + delta_lines

    return shifts, dropped


class ReviewSession:
    """
    Applies accepted edits to a buffer and keeps the remaining edits of the
    set consistent with the mutated text.

    Calls must be sequential: one accept fully rebases the set before the
    next one starts.
    """

    def __init__(self, settings: Optional[ReviewSettings] = None, notify: Optional[Notifier] = None):
        self.settings = settings or ReviewSettings()
        self.edits = EditSet(
            batch_size=self.settings.batch_size,
            auto_advance=self.settings.auto_advance,
            notify=notify,
        )
        self._busy = False

    # --- queue facade -----------------------------------------------------

    def ingest(self, edits: Sequence[Edit], buffer: Optional[DocumentBuffer] = None) -> None:
        self.edits.ingest(edits, buffer)

    def visible_batch(self) -> List[Edit]:
        return self.edits.visible_batch()

    def pending_count(self) -> int:
        return self.edits.pending_count()

    def advance(self) -> bool:
        return self.edits.advance()

    def clear(self) -> None:
        self.edits.clear()

    # --- resolution -------------------------------------------------------

    def _begin(self, buffer: Optional[DocumentBuffer]) -> None:
        if self._busy:
            raise ReentrantAcceptError("An accept is already in progress")
        if buffer is None:
            raise BufferUnavailableError("No document buffer to apply the edit to")

    def accept(self, edit_id: str, buffer: Optional[DocumentBuffer]) -> AcceptResult:
        """
        Applies one pending edit as a single buffer transaction, then rebases
        or drops every other pending edit.

        Raises:
            EditNotFoundError / EditNotPendingError: the id cannot be accepted
            BufferUnavailableError: `buffer` is None
            EditApplicationError: the buffer rejected the range; the edit is
                removed and nothing else changes
        """
        edit = self.edits.get(edit_id)
        if not edit.is_pending:
            raise EditNotPendingError(f"Edit {edit_id!r} is already {edit.status.value}")
        self._begin(buffer)

        self._busy = True
        try:
            try:
                rng = transaction_range(edit, buffer)
                buffer.apply_edit([rng])
            except DocumentBufferError as e:
                self.edits.remove(edit.id)
                logger.warning(
                    "Edit no longer fits the document",
                    edit_id=edit.id, start_line=edit.start_line, error=str(e),
                )
                self.edits.settle()
                raise EditApplicationError(
                    edit.id, f"Could not apply edit at line {edit.start_line}: {e}", e.details
                ) from e

            delta_lines = count_lines(edit.content) - edit.original_line_count
            others = [e for e in self.edits.pending_edits() if e.id != edit.id]
            shifts, dropped = plan_rebase(edit, delta_lines, others)

            for other in others:
                if other.id in shifts:
                    other.start_line = shifts[other.id]
            self.edits.discard(d.id for d in dropped)
            edit.status = EditStatus.ACCEPTED

            logger.info(
                "Accepted edit",
                edit_id=edit.id, kind=edit.kind.value, delta_lines=delta_lines,
                shifted=len(shifts), dropped=len(dropped),
            )
            if dropped:
                self.edits.emit(
                    Notice.CONFLICTS_DROPPED,
                    f"{len(dropped)} conflicting suggestion(s) were removed.",
                    len(dropped),
                )
            self.edits.settle()

            return AcceptResult(
                accepted=[edit],
                ranges=[rng],
                delta_lines=delta_lines,
                shifted=list(shifts),
                dropped=dropped,
            )
        finally:
            self._busy = False

    def reject(self, edit_id: str) -> Edit:
        """Removes a pending edit. The buffer and other edits are untouched."""
        edit = self.edits.get(edit_id)
        if not edit.is_pending:
            raise EditNotPendingError(f"Edit {edit_id!r} is already {edit.status.value}")
        self.edits.remove(edit_id)
        edit.status = EditStatus.REJECTED
        logger.info("Rejected edit", edit_id=edit_id)
        self.edits.settle()
        return edit

    def accept_all(self, buffer: Optional[DocumentBuffer]) -> AcceptResult:
        """
        Applies every pending edit, visible and backlog, in one transaction.

        Edits are taken bottom to top; insertions sharing an anchor are merged
        in their original order, adjacent deletions become one range, and
        anything overlapping an edit already taken is dropped. The set is empty afterwards.
        """
        self._begin(buffer)
        pending = self.edits.pending_edits()
        if not pending:
            return AcceptResult()

        self._busy = True
        try:
            order = sorted(range(len(pending)), key=lambda i: (-pending[i].start_line, i))

            # Each group is applied as one range: a single edit, stacked
            # insertions, or a run of adjacent deletions
            groups: List[List[Edit]] = []
            dropped: List[Edit] = []
            for i in order:
                candidate = pending[i]
                home: Optional[List[Edit]] = None
                conflict = False
                for group in groups:
                    if _joins_group(candidate, group):
                        home = group
                        continue
                    start, end = _group_span(group)
                    if ranges_overlap(candidate.start_line, candidate.end_line, start, end):
                        conflict = True
                        break
                if conflict:
                    dropped.append(candidate)
                elif home is not None:
                    home.append(candidate)
                else:
                    groups.append([candidate])

            ranges: List[BufferRange] = []
            applied: List[List[Edit]] = []
            failed: List[Edit] = []
            for group in groups:
                target = _group_target(group)
                try:
                    ranges.append(transaction_range(target, buffer))
                    applied.append(group)
                except DocumentBufferError as e:
                    logger.warning("Edit no longer fits the document", start_line=target.start_line, error=str(e))
                    failed.extend(group)

            try:
                buffer.apply_edit(ranges)
            except DocumentBufferError as e:
                ids = [edit.id for group in applied for edit in group]
                raise EditApplicationError(
                    ids[0] if ids else "",
                    f"Could not apply {len(ids)} edit(s) together: {e}",
                    {"edit_ids": ids, **e.details},
                ) from e

            accepted = [edit for group in applied for edit in group]
            for edit in accepted:
                edit.status = EditStatus.ACCEPTED
            position = {edit.id: i for i, edit in enumerate(pending)}
            accepted.sort(key=lambda edit: position[edit.id])

            delta_lines = sum(
                count_lines(edit.content) - edit.original_line_count for edit in accepted
            )
            logger.info(
                "Accepted all edits",
                accepted=len(accepted), dropped=len(dropped), failed=len(failed),
            )
            if dropped:
                self.edits.emit(
                    Notice.CONFLICTS_DROPPED,
                    f"{len(dropped)} conflicting suggestion(s) were removed.",
                    len(dropped),
                )
            self.edits.drain()

            return AcceptResult(
                accepted=accepted,
                ranges=ranges,
                delta_lines=delta_lines,
                dropped=dropped,
                failed=failed,
            )
        finally:
            self._busy = False
