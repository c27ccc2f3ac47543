"""Blueprint Writer Pipeline Orchestrator.

Materialises a project blueprint into a Next.js source tree:

Stage 1:  VALIDATE   -- Blueprint present; generated code for full/backend runs.
Stage 2:  PACKAGE    -- Write or merge ``package.json``.
Stage 3:  SKELETON   -- Static config files, ``src/app`` and ``public``.
Stage 4:  DEFAULTAPP -- Default application files and the dialect's db layer.
Stage 5:  COMPONENTS -- Shared React components.
Stage 6:  SCHEMA     -- Base schema and incremental migrations.
Stage 7:  MEDIA      -- Fetch referenced images and rewrite the blueprint.
Stage 8:  VIEWS      -- View components, then one page per blueprint page.
Stage 9:  DESIGN     -- Merge design tokens into ``globals.css``.
Stage 10: APIS       -- API route handlers.
Stage 11: DOCS       -- ``ARCHITECTURE.md``.

Stages run strictly in order; a failing stage aborts the rest without
rolling back earlier writes.

Usage::

    python -m blueprint_writer.pipeline project.json --output ./my-site
    python -m blueprint_writer.pipeline project.json -o ./my-site --mode backend --dialect postgres
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field
from rich.markup import escape
from rich.panel import Panel

from blueprint_writer.blueprint import Blueprint, Code, ProjectInput, normalize_project_payload
from blueprint_writer.collaborators import MediaFetcher, ViewRenderer
from blueprint_writer.config import Config
from blueprint_writer.errors import BlueprintWriterError, ValidationError
from blueprint_writer.jobs import JobRegistry
from blueprint_writer.media_client import MediaClient
from blueprint_writer.migrations import Dialect, write_base_schema, write_incremental_migrations
from blueprint_writer.scaffolder.apis import ApiWriter
from blueprint_writer.scaffolder.architecture import ArchitectureWriter
from blueprint_writer.scaffolder.components import ComponentWriter
from blueprint_writer.scaffolder.defaultapp import DefaultAppWriter
from blueprint_writer.scaffolder.design import DesignWriter
from blueprint_writer.scaffolder.media import MediaResolver
from blueprint_writer.scaffolder.pages import PageWriter
from blueprint_writer.scaffolder.skeleton import SkeletonWriter
from blueprint_writer.scaffolder.templates import TemplateRenderer
from blueprint_writer.scaffolder.views import DefaultViewRenderer
from blueprint_writer.utils import (
    console,
    debug_log,
    debug_scope,
    format_duration,
    load_json,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    sanitize_target_path,
)

# ---------------------------------------------------------------------------
# Exceptions and result types
# ---------------------------------------------------------------------------


class PipelineError(BlueprintWriterError):
    """Raised when a pipeline stage fails unexpectedly."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"Stage {stage}: {message}")


class RunMode(str, Enum):
    FULL = "full"
    PAGES_ONLY = "pages"
    BACKEND_ONLY = "backend"


class MediaSummary(BaseModel):
    resolved: dict[str, str] = Field(default_factory=dict, description="identifier -> public path")
    unresolved: dict[str, str] = Field(default_factory=dict, description="identifier -> reason")


class PipelineResult(BaseModel):
    """Summary of one pipeline run."""

    mode: RunMode = Field(...)
    target_dir: Path = Field(...)
    stages_completed: list[str] = Field(default_factory=list)
    files_written: list[str] = Field(default_factory=list, description="Paths relative to target_dir")
    media: MediaSummary = Field(default_factory=MediaSummary)
    migration_files: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, description="Wall-clock seconds")


@dataclass
class _RunState:
    """Mutable state handed from stage to stage within one run."""

    project: ProjectInput
    blueprint: Blueprint
    target: Path
    dialect: Dialect
    write_apis: bool
    result: PipelineResult
    view_map: dict[str, Any] = field(default_factory=dict)
    view_styles: list[str] = field(default_factory=list)

    @property
    def code(self) -> Optional[Code]:
        return self.project.code

    def record(self, paths: list[Path]) -> None:
        for path in paths:
            try:
                rel = path.relative_to(self.target).as_posix()
            except ValueError:
                rel = str(path)
            if rel not in self.result.files_written:
                self.result.files_written.append(rel)


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Blueprint Writer Pipeline Orchestrator.

    Drives the stage sequence for one target directory.  When a
    :class:`~blueprint_writer.jobs.JobRegistry` and ``job_id`` are supplied,
    every stage transition is mirrored into that job's status and log.

    Attributes:
        config: Global writer configuration.
        media_client: Fetcher used by the media stage.  Defaults to an
            :class:`~blueprint_writer.media_client.MediaClient` built from
            ``config.media``.
        view_renderer: Collaborator producing the view components.
    """

    def __init__(
        self,
        config: Config,
        media_client: Optional[MediaFetcher] = None,
        view_renderer: Optional[ViewRenderer] = None,
        registry: Optional[JobRegistry] = None,
        job_id: Optional[str] = None,
    ) -> None:
        self.config = config
        self.media_client = media_client or MediaClient(
            base_url=config.media.base_url,
            timeout=config.media.timeout,
        )
        self.renderer = TemplateRenderer()
        self.view_renderer = view_renderer or DefaultViewRenderer(self.renderer)
        self.registry = registry
        self.job_id = job_id

    # ------------------------------------------------------------------
    # Job mirroring
    # ------------------------------------------------------------------

    def _log(self, line: str) -> None:
        debug_log(line)
        if self.registry is not None and self.job_id:
            self.registry.append_log(self.job_id, line)

    def _status(self, **update: Any) -> None:
        if self.registry is not None and self.job_id:
            self.registry.set_status(self.job_id, **update)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(project: ProjectInput | dict[str, Any], mode: RunMode) -> ProjectInput:
        """Normalise *project* and check the sections *mode* needs."""
        normalized = normalize_project_payload(project)
        if mode in (RunMode.FULL, RunMode.BACKEND_ONLY) and normalized.code is None:
            raise ValidationError(f"No code found in project data (required for {mode.value} runs)")
        return normalized

    def _stages_for(
        self, mode: RunMode, state: _RunState
    ) -> list[tuple[str, Callable[[_RunState], Awaitable[None]]]]:
        has_models = bool(state.blueprint.models)
        has_api_code = bool(state.code and state.code.apis)

        if mode is RunMode.BACKEND_ONLY:
            return [
                ("schema", self._stage_schema),
                ("apis", self._stage_apis),
                ("docs", self._stage_docs),
            ]

        stages: list[tuple[str, Callable[[_RunState], Awaitable[None]]]] = [
            ("package", self._stage_package),
            ("skeleton", self._stage_skeleton),
            ("defaultapp", self._stage_defaultapp),
            ("components", self._stage_components),
        ]
        if mode is RunMode.FULL or (state.write_apis and has_models):
            stages.append(("schema", self._stage_schema))
        stages += [
            ("media", self._stage_media),
            ("views", self._stage_views),
            ("design", self._stage_design),
        ]
        if mode is RunMode.FULL:
            if state.blueprint.apis:
                stages.append(("apis", self._stage_apis))
            stages.append(("docs", self._stage_docs))
        elif state.write_apis and has_api_code:
            stages.append(("apis", self._stage_apis))
        return stages

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        project: ProjectInput | dict[str, Any],
        mode: RunMode | str = RunMode.FULL,
        target_dir: str | Path = ".",
        dialect: Dialect | str | None = None,
        write_apis: bool = False,
    ) -> PipelineResult:
        """Execute the stages selected by *mode* against *target_dir*.

        Args:
            project: A :class:`ProjectInput` or a raw payload in either of the
                shapes accepted by :func:`normalize_project_payload`.
            mode: Which subset of stages to run.
            target_dir: Output directory; must sit inside an allowed root.
            dialect: SQL dialect; defaults to ``config.dialect``.
            write_apis: In pages-only runs, also write schema and API routes.

        Returns:
            The :class:`PipelineResult` of the run.

        Raises:
            ValidationError: Required input is missing (nothing is written).
            SecurityError: *target_dir* escapes every allowed root.
            PipelineError: A stage failed with an unexpected error.
        """
        with debug_scope(self.config.debug):
            return await self._execute(project, mode, target_dir, dialect, write_apis)

    async def _execute(
        self,
        project: ProjectInput | dict[str, Any],
        mode: RunMode | str,
        target_dir: str | Path,
        dialect: Dialect | str | None,
        write_apis: bool,
    ) -> PipelineResult:
        pipeline_start = time.monotonic()
        mode = RunMode(mode)

        try:
            print_stage_header(1, "validate")
            normalized = self._validate(project, mode)
            target = sanitize_target_path(self.config.allowed_roots, target_dir)
            try:
                chosen = Dialect(dialect or self.config.dialect)
            except ValueError as exc:
                raise ValidationError(f"Unknown dialect: {dialect}") from exc
        except BlueprintWriterError as exc:
            self._fail("validate", exc)
            raise

        state = _RunState(
            project=normalized,
            blueprint=normalized.blueprint,
            target=target,
            dialect=chosen,
            write_apis=write_apis,
            result=PipelineResult(mode=mode, target_dir=target),
        )
        state.result.stages_completed.append("validate")

        if self.registry is not None and self.job_id:
            self.registry.set_target_dir(self.job_id, str(target))
            self.registry.set_dialect(self.job_id, chosen)

        console.print(
            Panel(
                f"[bold bright_cyan]Blueprint Writer Pipeline[/bold bright_cyan]\n"
                f"Project : {self._project_name(normalized)}\n"
                f"Output  : {target}\n"
                f"Mode    : {mode.value}\n"
                f"Dialect : {chosen.value}",
                title="[bold]Pipeline Start[/bold]",
                border_style="bright_cyan",
            )
        )

        stages = self._stages_for(mode, state)
        total = len(stages) + 1
        self._status(state="running", step="validate", progress_percent=int(100 / total))
        self._log(f"Validated project for {mode.value} run into {target}")

        for index, (name, stage) in enumerate(stages, start=2):
            print_stage_header(index, name)
            self._status(step=name, progress_percent=int(100 * (index - 1) / total))
            self._log(f"Stage {name} started")

            stage_start = time.monotonic()
            try:
                await stage(state)
            except BlueprintWriterError as exc:
                self._fail(name, exc, state)
                raise
            except OSError as exc:
                self._fail(name, exc, state)
                raise
            except Exception as exc:
                console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
                error = PipelineError(name, f"{type(exc).__name__}: {exc}")
                self._fail(name, error, state)
                raise error from exc

            elapsed = time.monotonic() - stage_start
            state.result.stages_completed.append(name)
            self._log(f"Stage {name} completed in {format_duration(elapsed)}")
            print_success(f"Stage {name} completed in {format_duration(elapsed)}")

        state.result.duration = round(time.monotonic() - pipeline_start, 3)
        self._status(state="completed", step="done", progress_percent=100)
        if self.registry is not None and self.job_id:
            self.registry.set_result(self.job_id, state.result)

        self._print_final_summary(state.result)
        return state.result

    def _fail(self, stage: str, exc: BaseException, state: _RunState | None = None) -> None:
        print_error(f"Stage {stage} FAILED: {exc}")
        self._log(f"Error: {exc}")
        self._status(state="failed", step=stage, progress_percent=100, error_message=str(exc))
        if state is not None and self.registry is not None and self.job_id:
            self.registry.set_result(self.job_id, state.result)

    def _project_name(self, project: ProjectInput) -> str:
        return self.config.project_name or project.name or "blueprint-app"

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _stage_package(self, state: _RunState) -> None:
        writer = SkeletonWriter(self.renderer)
        path = await writer.write_package_json(
            state.target, self._project_name(state.project), state.dialect
        )
        state.record([path] if path else [])

    async def _stage_skeleton(self, state: _RunState) -> None:
        state.record(await SkeletonWriter(self.renderer).write(state.target))

    async def _stage_defaultapp(self, state: _RunState) -> None:
        writer = DefaultAppWriter(self.renderer)
        state.record(
            await writer.write(state.target, state.dialect, self._project_name(state.project))
        )

    async def _stage_components(self, state: _RunState) -> None:
        state.record(await ComponentWriter().write(state.target))

    async def _stage_schema(self, state: _RunState) -> None:
        blueprint = state.blueprint
        base = await asyncio.to_thread(
            write_base_schema, state.target, blueprint.models, state.dialect
        )
        if base is not None:
            state.record([base])
            state.result.migration_files.append(base.name)
            self._log(f"Wrote base schema {base.name}")

        path, compiled = await asyncio.to_thread(
            write_incremental_migrations, state.target, blueprint.migrations, state.dialect
        )
        if path is not None:
            state.record([path])
            state.result.migration_files.append(path.name)
            self._log(f"Wrote migration {path.name} ({len(compiled.statements)} statement(s))")
        for warning in compiled.warnings:
            state.result.warnings.append(str(warning))
            print_warning(str(warning))

    async def _stage_media(self, state: _RunState) -> None:
        resolution = await MediaResolver(self.media_client).resolve(state.target, state.blueprint)
        state.blueprint = resolution.blueprint
        state.record(resolution.files)
        state.result.media = MediaSummary(
            resolved=resolution.resolved, unresolved=resolution.unresolved
        )
        for identifier, reason in resolution.unresolved.items():
            message = f"Unresolved media {identifier}: {reason}"
            state.result.warnings.append(message)
            self._log(message)
            print_warning(message)

    async def _stage_views(self, state: _RunState) -> None:
        rendered = await self.view_renderer.render(
            state.target, state.blueprint, state.code, state.project.auth_providers
        )
        state.view_map = dict(rendered.view_map)
        state.view_styles = list(rendered.styles)
        state.record(list(rendered.files))

        pages = await PageWriter(self.renderer).write(state.target, state.blueprint, state.view_map)
        state.record(pages)

    async def _stage_design(self, state: _RunState) -> None:
        state.record(
            await DesignWriter().write(state.target, state.blueprint.design, state.view_styles)
        )

    async def _stage_apis(self, state: _RunState) -> None:
        state.record(await ApiWriter(self.renderer).write(state.target, state.blueprint, state.code))

    async def _stage_docs(self, state: _RunState) -> None:
        state.record(await ArchitectureWriter(self.renderer).write(state.target, state.blueprint))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _print_final_summary(self, result: PipelineResult) -> None:
        """Print the run summary table and the closing panel."""
        print_summary_table(
            {
                "Mode": result.mode.value,
                "Stages": ", ".join(result.stages_completed),
                "Files written": str(len(result.files_written)),
                "Migrations": ", ".join(result.migration_files) or "none",
                "Media resolved": str(len(result.media.resolved)),
                "Media unresolved": str(len(result.media.unresolved)),
                "Warnings": str(len(result.warnings)),
            },
            title="Blueprint Writer Summary",
        )

        border_style = "bold yellow" if result.warnings else "bold green"
        detail_lines = [
            "[bold green]PIPELINE SUCCEEDED[/bold green]",
            "",
            f"Duration : {format_duration(result.duration)}",
            f"Output   : {result.target_dir}",
        ]
        if result.media.unresolved:
            detail_lines.append(
                f"Unresolved media : {', '.join(sorted(result.media.unresolved))}"
            )

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Pipeline Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# Convenience coroutines
# ---------------------------------------------------------------------------


async def write_project_from_blueprint(
    project: ProjectInput | dict[str, Any],
    target_dir: str | Path,
    config: Optional[Config] = None,
    dialect: Dialect | str | None = None,
    **kwargs: Any,
) -> PipelineResult:
    """Run the full pipeline.  Extra keyword arguments go to :class:`Pipeline`."""
    pipeline = Pipeline(config or Config.from_env(), **kwargs)
    return await pipeline.run(project, RunMode.FULL, target_dir, dialect=dialect)


async def write_project_pages_only(
    project: ProjectInput | dict[str, Any],
    target_dir: str | Path,
    config: Optional[Config] = None,
    dialect: Dialect | str | None = None,
    write_apis: bool = False,
    **kwargs: Any,
) -> PipelineResult:
    """Write the front end only (plus schema and APIs when *write_apis*)."""
    pipeline = Pipeline(config or Config.from_env(), **kwargs)
    return await pipeline.run(
        project, RunMode.PAGES_ONLY, target_dir, dialect=dialect, write_apis=write_apis
    )


async def write_project_backend_only(
    project: ProjectInput | dict[str, Any],
    target_dir: str | Path,
    config: Optional[Config] = None,
    dialect: Dialect | str | None = None,
    **kwargs: Any,
) -> PipelineResult:
    """Write schema, API routes and ``ARCHITECTURE.md`` into an existing tree."""
    pipeline = Pipeline(config or Config.from_env(), **kwargs)
    return await pipeline.run(project, RunMode.BACKEND_ONLY, target_dir, dialect=dialect)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point for ``python -m blueprint_writer.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Blueprint Writer -- materialise a project blueprint into a Next.js tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m blueprint_writer.pipeline project.json\n"
            "  python -m blueprint_writer.pipeline project.json -o ./my-site --mode pages --write-apis\n"
            "  python -m blueprint_writer.pipeline project.json --mode backend --dialect postgres\n"
        ),
    )

    parser.add_argument(
        "project",
        help="Path to the project JSON (blueprint, code, AuthProviders)",
    )
    parser.add_argument(
        "--output", "-o",
        default="./output",
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in RunMode],
        default=RunMode.FULL.value,
        help="Which stages to run (default: full)",
    )
    parser.add_argument(
        "--dialect",
        choices=[d.value for d in Dialect],
        default=None,
        help="SQL dialect (default: BLUEPRINT_DIALECT or sqlite)",
    )
    parser.add_argument(
        "--write-apis",
        action="store_true",
        help="In pages mode, also write the schema and API routes",
    )
    parser.add_argument(
        "--project-name",
        default=None,
        help="Override the package name written to package.json",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print timestamped diagnostics to stderr (default: BLUEPRINT_DEBUG)",
    )

    args = parser.parse_args()

    project_path = Path(args.project)
    if not project_path.exists():
        console.print(f"[bold red]Error:[/bold red] Project file not found: {project_path}")
        sys.exit(1)

    try:
        payload = load_json(project_path)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid project JSON: {exc}")
        sys.exit(1)

    config = Config.from_env()
    output = Path(args.output).resolve()
    if not any(output == root or root in output.parents for root in config.allowed_roots):
        # An explicit --output is always writable.
        config.allowed_roots = [*config.allowed_roots, output]
    if args.project_name:
        config.project_name = args.project_name
    if args.debug:
        config.debug = True

    pipeline = Pipeline(config)
    try:
        asyncio.run(
            pipeline.run(
                payload,
                RunMode(args.mode),
                output,
                dialect=args.dialect,
                write_apis=args.write_apis,
            )
        )
    except BlueprintWriterError as exc:
        console.print(f"[bold red]Pipeline failed:[/bold red] {exc}")
        sys.exit(1)

    console.print("[bold green]Pipeline completed successfully![/bold green]")


if __name__ == "__main__":
    main()
