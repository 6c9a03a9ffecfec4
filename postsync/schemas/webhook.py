"""GitHub push webhook payload schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WebhookRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str


class WebhookCommit(BaseModel):
    """A commit as listed in a push payload."""

    model_config = ConfigDict(extra="ignore")

    id: str
    message: str = ""
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class PushPayload(BaseModel):
    """The subset of a GitHub push event the importer reads."""

    model_config = ConfigDict(extra="ignore")

    ref: str
    repository: WebhookRepository
    head_commit: WebhookCommit | None = None
    commits: list[WebhookCommit] = Field(default_factory=list)

    @property
    def branch(self) -> str:
        """Last segment of the ref, e.g. ``main`` for ``refs/heads/main``."""
        return self.ref.rsplit("/", maxsplit=1)[-1]


class ImportResponse(BaseModel):
    """Result of processing a push event."""

    status: str
    message: str = ""
    imported: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
