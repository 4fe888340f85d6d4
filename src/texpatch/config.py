from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReviewSettings(BaseSettings):
    """
    Tunables for extraction and review.

    Every field can be overridden from the environment, e.g.
    TEXPATCH_BATCH_SIZE=3.
    """

    batch_size: int = Field(default=5, ge=1, description="Edits shown to the reviewer at once")
    auto_advance: bool = Field(
        default=True,
        description="Promote the next batch as soon as the visible batch is resolved",
    )
    fence_language: str = Field(
        default="latex-diff",
        description="Info string of the fenced blocks that carry edit proposals",
    )
    numbered_max_lines: int = Field(
        default=500, ge=1, description="Documents longer than this are numbered head/tail only"
    )
    numbered_edge_lines: int = Field(
        default=100, ge=1, description="Lines kept at each end of a long numbered document"
    )

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="TEXPATCH_",
    )
