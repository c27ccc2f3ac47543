"""Idempotent, content-addressed application of file bundles.

A bundle is a manifest (ordered ``file``/``dir`` entries) plus base64 file
contents.  :func:`apply_bundle` reconciles it against an existing directory:
identical files are left alone, new files are created, and differing files
are handled according to an :class:`OverwriteMode`.

Every path is validated against the allow-listed roots *before* the first
write, so a single escaping entry aborts the whole call with nothing written.
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

import pydantic

from ..errors import SecurityError, ValidationError
from ..utils import (
    debug_log,
    ensure_dir,
    file_sha256,
    has_parent_segment,
    normalize_rel_path,
    sanitize_target_path,
    sha256_hex,
)
from .models import BundleFile, JobResultSummary, ManifestEntry, OverwriteMode

if TYPE_CHECKING:
    from ..config import Config


def _coerce_entries(manifest: Iterable[ManifestEntry | dict[str, Any]]) -> list[ManifestEntry]:
    try:
        return [ManifestEntry.model_validate(e) if isinstance(e, dict) else e for e in manifest]
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid manifest entry: {exc}") from exc


def _coerce_files(files: Iterable[BundleFile | dict[str, Any]]) -> list[BundleFile]:
    try:
        return [BundleFile.model_validate(f) if isinstance(f, dict) else f for f in files]
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid bundle file: {exc}") from exc


def _resolve_entry(target: Path, rel: str) -> Path:
    if has_parent_segment(rel):
        raise SecurityError(rel, f"Bundle path contains a parent-directory segment: {rel}")
    return sanitize_target_path([target], target / rel)


def _coerce_mode(value: OverwriteMode | str) -> OverwriteMode:
    try:
        return OverwriteMode(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown overwrite mode: {value}") from exc


def _decode(bundle_file: BundleFile) -> bytes:
    try:
        return base64.b64decode(bundle_file.contents_base64)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"Invalid base64 contents for {bundle_file.path}: {exc}") from exc


def unique_backup_path(original: Path, now: datetime | None = None) -> Path:
    """Return ``<name>.bak.<timestamp>`` next to *original*, numbered on collision."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-%f")
    candidate = original.with_name(f"{original.name}.bak.{stamp}")
    counter = 1
    while candidate.exists():
        candidate = original.with_name(f"{original.name}.bak.{stamp}.{counter}")
        counter += 1
    return candidate


def apply_bundle(
    target_dir: str | Path,
    manifest: Iterable[ManifestEntry | dict[str, Any]],
    files: Iterable[BundleFile | dict[str, Any]],
    overwrite_mode: OverwriteMode | str | None = None,
    allowed_roots: list[str | Path] | None = None,
    config: Config | None = None,
) -> JobResultSummary:
    """Reconcile a bundle against *target_dir*.

    Args:
        target_dir: Directory the bundle is applied to; must resolve inside
            one of *allowed_roots*.
        manifest: Ordered entries. ``dir`` entries are created first.
        files: Contents for ``file`` entries, matched by normalised path.
            Entries with no matching content are reported as skipped.
        overwrite_mode: Policy for existing files whose digest differs.
            Defaults to ``config.overwrite_mode``.
        allowed_roots: Roots writes must stay under. Defaults to
            ``config.allowed_roots``.
        config: Settings for the defaults above.  Read once from the
            environment (:meth:`Config.from_env`) when omitted.

    Returns:
        A :class:`JobResultSummary` partitioning every processed path.

    Raises:
        SecurityError: If the target or any entry escapes its root.
        ValidationError: For an unrecognised overwrite mode, malformed
            entries or undecodable contents.
    """
    if config is None and (overwrite_mode is None or not allowed_roots):
        # config imports bundle.models
        from ..config import Config

        config = Config.from_env()
    mode = _coerce_mode(overwrite_mode if overwrite_mode is not None else config.overwrite_mode)
    roots = list(allowed_roots) if allowed_roots else list(config.allowed_roots)
    target = sanitize_target_path(roots, target_dir)

    entries = _coerce_entries(manifest)
    contents: dict[str, tuple[BundleFile, bytes]] = {}
    for bundle_file in _coerce_files(files):
        contents[normalize_rel_path(bundle_file.path)] = (bundle_file, _decode(bundle_file))

    # Validate every path up front so an escape writes nothing.
    resolved: list[tuple[ManifestEntry, str, Path]] = []
    seen: set[str] = set()
    for entry in entries:
        rel = normalize_rel_path(entry.path)
        if entry.mode == "file" and not rel:
            raise ValidationError(f"Bundle file entry has an empty path: {entry.path!r}")
        if rel in seen:
            continue
        seen.add(rel)
        resolved.append((entry, rel, _resolve_entry(target, rel)))

    debug_log(f"[apply_bundle] target={target} entries={len(resolved)} mode={mode.value}")
    ensure_dir(target)
    result = JobResultSummary()

    for entry, rel, abs_path in resolved:
        if entry.mode == "dir":
            ensure_dir(sanitize_target_path([target], abs_path))

    for entry, rel, abs_path in resolved:
        if entry.mode != "file":
            continue
        if rel not in contents:
            result.skipped.append(rel)
            continue

        bundle_file, new_bytes = contents[rel]
        abs_path = sanitize_target_path([target], abs_path)
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.exists():
            abs_path.write_bytes(new_bytes)
            result.created.append(rel)
            continue

        new_hash = (bundle_file.hash or sha256_hex(new_bytes)).lower()
        if file_sha256(abs_path) == new_hash:
            result.skipped.append(rel)
            continue

        if mode is OverwriteMode.FAIL:
            result.conflicts.append(rel)
        elif mode is OverwriteMode.SKIP:
            result.skipped.append(rel)
        elif mode is OverwriteMode.BACKUP:
            backup = unique_backup_path(abs_path)
            abs_path.rename(backup)
            abs_path.write_bytes(new_bytes)
            result.backups.append(backup.relative_to(target).as_posix())
            result.updated.append(rel)
        elif mode is OverwriteMode.OVERWRITE:
            abs_path.write_bytes(new_bytes)
            result.updated.append(rel)
        else:
            raise ValidationError(f"Unknown overwrite mode: {mode!r}")

    debug_log(
        f"[apply_bundle] created={len(result.created)} updated={len(result.updated)} "
        f"skipped={len(result.skipped)} conflicts={len(result.conflicts)}"
    )
    return result
