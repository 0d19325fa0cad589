"""API schemas for import runs."""

from typing import Any

from pydantic import BaseModel, Field

from labelcatalog.domain.entities import ImportRun


class ImportErrorEntry(BaseModel):
    """One release that failed during a run."""

    release_external_id: str | None = None
    release_title: str | None = None
    stage: str = Field(description="search, fetch, artists, release, tracks or commit")
    message: str
    error_type: str | None = None


class ImportRunResponse(BaseModel):
    """Aggregate result of one import run."""

    run_id: str
    label_id: str
    status: str = Field(description="pending, running, completed or failed")
    dry_run: bool = False
    releases_imported: int = 0
    artists_imported: int = 0
    tracks_imported: int = 0
    releases_created: int = 0
    artists_created: int = 0
    tracks_created: int = 0
    releases_skipped: int = 0
    errors: list[ImportErrorEntry] = Field(default_factory=list)
    message: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    error_type: str | None = Field(
        default=None, description="Run-level failure type (run_all only)"
    )

    @classmethod
    def from_summary(cls, summary: dict[str, Any]) -> "ImportRunResponse":
        return cls.model_validate(summary)

    @classmethod
    def from_run(cls, run: ImportRun) -> "ImportRunResponse":
        return cls.model_validate(run.summary())


class ImportAllResponse(BaseModel):
    runs: list[ImportRunResponse]
    failed: int = Field(description="Number of labels whose run failed")
