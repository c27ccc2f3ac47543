"""In-memory registry of generation jobs.

Each job has a status record, an append-only log, an optional free-text plan
and an optional result.  They are exposed as addressable resources::

    mem://jobs/<id>/status   application/json
    mem://jobs/<id>/logs     text/plain
    mem://jobs/<id>/plan     text/markdown
    mem://jobs/<id>/result   application/json

The registry is an ordinary object owned by the invoking process and passed
to whoever reports progress; nothing is persisted across restarts.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Awaitable, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from .migrations.dialects import Dialect
from .utils import now_iso

JOB_URI_PREFIX = "mem://jobs/"

ResourceKind = Literal["status", "logs", "plan", "result"]

_MIME_TYPES: dict[str, str] = {
    "status": "application/json",
    "logs": "text/plain",
    "plan": "text/markdown",
    "result": "application/json",
}


class JobStatus(BaseModel):
    """Lifecycle record of a job.

    Serialised with camelCase keys (``jobId``, ``progressPercent``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str = Field(...)
    state: str = Field(default="queued", description="queued, running, completed or failed")
    step: str = Field(default="queued")
    progress_percent: int = Field(default=0, ge=0, le=100)
    started_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)
    expected_duration_seconds: Optional[float] = Field(default=None)
    recommended_polling_interval_seconds: Optional[float] = Field(default=None)
    error_message: Optional[str] = Field(default=None)


class Job(BaseModel):
    """A tracked generation run."""

    id: str = Field(...)
    status: JobStatus = Field(...)
    logs: list[str] = Field(default_factory=list)
    plan: Optional[str] = Field(default=None)
    result: Optional[dict[str, Any]] = Field(default=None)
    project_id: Optional[str] = Field(default=None)
    target_dir: Optional[str] = Field(default=None)
    dialect: Optional[Dialect] = Field(default=None)


class ResourceDescriptor(NamedTuple):
    uri: str
    name: str
    mime_type: str


class ResourceContent(NamedTuple):
    mime_type: str
    body: str


class JobRegistry:
    """Tracks zero or more jobs for the lifetime of the process.

    Mutators called with an unknown job id are no-ops; readers return ``None``.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_job(
        self,
        expected_duration_seconds: float | None = None,
        recommended_polling_interval_seconds: float | None = None,
    ) -> Job:
        """Allocate a new job in the ``queued`` state."""
        job_id = str(uuid.uuid4())
        status = JobStatus(
            job_id=job_id,
            expected_duration_seconds=expected_duration_seconds,
            recommended_polling_interval_seconds=recommended_polling_interval_seconds,
        )
        job = Job(id=job_id, status=status)
        self._jobs[job_id] = job
        return job

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        return list(self._jobs.values())

    @staticmethod
    def _touch(job: Job) -> None:
        # ISO-8601 UTC strings sort chronologically; never move backwards.
        job.status.updated_at = max(job.status.updated_at, now_iso())

    def append_log(self, job_id: str, line: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.logs.append(line)
        self._touch(job)

    def set_status(self, job_id: str, /, **update: Any) -> None:
        """Merge *update* into the job's status.

        Keys may be given in snake_case or camelCase.  ``job_id`` cannot be
        changed and ``updated_at`` is always refreshed.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return
        changes = {to_snake(key): value for key, value in update.items()}
        merged = {**job.status.model_dump(), **changes, "job_id": job_id}
        merged["updated_at"] = max(job.status.updated_at, now_iso())
        job.status = JobStatus.model_validate(merged)

    def set_plan(self, job_id: str, plan: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.plan = plan
        self._touch(job)

    def set_result(self, job_id: str, result: BaseModel | dict[str, Any]) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.result = result.model_dump(mode="json") if isinstance(result, BaseModel) else dict(result)
        self._touch(job)

    def set_project_id(self, job_id: str, project_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.project_id = project_id

    def set_target_dir(self, job_id: str, target_dir: str) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.target_dir = str(target_dir)

    def set_dialect(self, job_id: str, dialect: Dialect | str) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.dialect = Dialect(dialect)

    def start(self, job_id: str, work: Awaitable[Any], step: str = "running") -> asyncio.Task:
        """Run *work* in the background, mirroring its outcome into the job.

        Must be called from a running event loop.  A failure is recorded on
        the job (state ``failed``) and re-raised inside the task.
        """

        async def _runner() -> Any:
            self.set_status(job_id, state="running", step=step)
            try:
                outcome = await work
            except Exception as exc:
                self.append_log(job_id, f"Error: {exc}")
                self.set_status(
                    job_id, state="failed", step="error", progress_percent=100, error_message=str(exc)
                )
                raise
            self.set_status(job_id, state="completed", step="done", progress_percent=100)
            return outcome

        return asyncio.get_running_loop().create_task(_runner())

    # ------------------------------------------------------------------
    # Addressable resources
    # ------------------------------------------------------------------

    def list_resource_descriptors(self) -> list[ResourceDescriptor]:
        descriptors: list[ResourceDescriptor] = []
        for job in self._jobs.values():
            base = f"{JOB_URI_PREFIX}{job.id}"
            for kind, mime in _MIME_TYPES.items():
                descriptors.append(ResourceDescriptor(f"{base}/{kind}", f"Job {job.id} {kind}", mime))
        return descriptors

    @staticmethod
    def parse_job_uri(uri: str) -> tuple[str, ResourceKind] | None:
        """Split ``mem://jobs/<id>/<kind>`` into ``(id, kind)``; ``None`` if malformed."""
        if not uri.startswith(JOB_URI_PREFIX):
            return None
        parts = uri[len(JOB_URI_PREFIX):].split("/")
        if len(parts) != 2 or not parts[0]:
            return None
        job_id, kind = parts
        if kind not in _MIME_TYPES:
            return None
        return job_id, kind  # type: ignore[return-value]

    def read_resource(self, uri: str) -> ResourceContent | None:
        parsed = self.parse_job_uri(uri)
        if parsed is None:
            return None
        job_id, kind = parsed
        job = self._jobs.get(job_id)
        if job is None:
            return None

        mime = _MIME_TYPES[kind]
        if kind == "status":
            return ResourceContent(mime, job.status.model_dump_json(indent=2, by_alias=True))
        if kind == "logs":
            body = "\n".join(job.logs) + ("\n" if job.logs else "")
            return ResourceContent(mime, body)
        if kind == "plan":
            return ResourceContent(mime, job.plan or "")
        return ResourceContent(mime, json.dumps(job.result or {}, indent=2))
