from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from texpatch.exceptions import NoOpEditError
from texpatch.utils.text import normalize_newlines


class EditKind(str, Enum):
    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"


class EditStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def new_edit_id() -> str:
    return uuid4().hex


def derive_kind(original_line_count: int, content: str) -> EditKind:
    """
    Classifies an edit from its shape alone. Labels supplied by the model are
    never consulted.
    """
    if original_line_count == 0:
        if not content:
            raise NoOpEditError("Edit consumes no lines and carries no content")
        return EditKind.INSERT
    if not content:
        return EditKind.DELETE
    return EditKind.REPLACE


class _EditBase(BaseModel):
    """
    One line-ranged change proposed by the assistant.

    `start_line` and `original_line_count` are only meaningful relative to the
    buffer state at the last rebase; the review engine keeps them current.
    """
    id: str = Field(default_factory=new_edit_id, description="Unique id, never reused.")

    start_line: int = Field(
        ...,
        ge=1,
        description="1-based line where the edit starts. Insertions go before this line."
    )

    original_line_count: int = Field(
        0,
        ge=0,
        description="Number of existing lines consumed. 0 for a pure insertion."
    )

    content: str = Field("", description="Inserted or replacement text, empty for deletions.")

    original_text: Optional[str] = Field(
        None,
        description="Snapshot of the consumed lines taken when the edit was proposed."
    )

    status: EditStatus = EditStatus.PENDING

    explanation: Optional[str] = Field(None, description="Display-only rationale from the assistant.")

    @property
    def end_line(self) -> int:
        if self.original_line_count == 0:
            return self.start_line
        return self.start_line + self.original_line_count - 1

    @property
    def is_pending(self) -> bool:
        return self.status == EditStatus.PENDING


class InsertEdit(_EditBase):
    kind: Literal[EditKind.INSERT] = EditKind.INSERT

    @model_validator(mode="after")
    def _check_shape(self) -> "InsertEdit":
        if self.original_line_count != 0 or not self.content:
            raise ValueError("insert edits consume no lines and need content")
        return self


class DeleteEdit(_EditBase):
    kind: Literal[EditKind.DELETE] = EditKind.DELETE

    @model_validator(mode="after")
    def _check_shape(self) -> "DeleteEdit":
        if self.original_line_count == 0 or self.content:
            raise ValueError("delete edits consume lines and carry no content")
        return self


class ReplaceEdit(_EditBase):
    kind: Literal[EditKind.REPLACE] = EditKind.REPLACE

    @model_validator(mode="after")
    def _check_shape(self) -> "ReplaceEdit":
        if self.original_line_count == 0 or not self.content:
            raise ValueError("replace edits consume lines and need content")
        return self


Edit = Annotated[Union[InsertEdit, DeleteEdit, ReplaceEdit], Field(discriminator="kind")]

EditListAdapter: TypeAdapter[List[Edit]] = TypeAdapter(List[Edit])

_VARIANTS = {
    EditKind.INSERT: InsertEdit,
    EditKind.DELETE: DeleteEdit,
    EditKind.REPLACE: ReplaceEdit,
}


def build_edit(
    start_line: int,
    original_line_count: int,
    content: str = "",
    *,
    original_text: Optional[str] = None,
    explanation: Optional[str] = None,
    edit_id: Optional[str] = None,
) -> Edit:
    """
    Builds the variant matching the derived kind.

    Raises:
        NoOpEditError: when the record would change nothing
        pydantic.ValidationError: when coordinates are negative or zero
    """
    content = normalize_newlines(content or "")
    kind = derive_kind(original_line_count, content)
    fields = dict(
        start_line=start_line,
        original_line_count=original_line_count,
        content=content,
        original_text=original_text,
        explanation=explanation,
    )
    if edit_id is not None:
        fields["id"] = edit_id
    return _VARIANTS[kind](**fields)


class Intent(BaseModel):
    """
    Permission flags inferred from one user request. Frozen for the lifetime of
    the edit set produced for that request.
    """
    model_config = ConfigDict(frozen=True)

    allow_insert: bool = True
    allow_delete: bool = True
    allow_replace: bool = True

    # Display hints only; never used for gating
    wants_insert: bool = False
    wants_delete: bool = False
    wants_replace: bool = False
    wants_reorder: bool = False
    wants_style_change: bool = False
    wants_dedupe: bool = False
    wants_grammar: bool = False
    multi_edit: bool = False
    full_revamp: bool = False
    is_read_only: bool = False

    def allows(self, kind: EditKind) -> bool:
        if kind == EditKind.INSERT:
            return self.allow_insert
        if kind == EditKind.DELETE:
            return self.allow_delete
        return self.allow_replace


class ValidationResult(BaseModel):
    accepted: List[Edit] = Field(default_factory=list)
    violations: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations


class BufferRange(BaseModel):
    """A 1-based [start, end) character range plus the text that replaces it."""
    model_config = ConfigDict(frozen=True)

    start_line: int
    start_column: int
    end_line: int
    end_column: int
    text: str = ""


class AcceptResult(BaseModel):
    """Outcome of one accept (or accept-all) call."""
    accepted: List[Edit] = Field(default_factory=list)
    ranges: List[BufferRange] = Field(default_factory=list)
    delta_lines: int = 0
    shifted: List[str] = Field(default_factory=list, description="Ids of edits whose start line moved.")
    dropped: List[Edit] = Field(default_factory=list, description="Edits removed because they conflicted.")
    failed: List[Edit] = Field(default_factory=list, description="Edits whose range no longer fit the buffer.")
