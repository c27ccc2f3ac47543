"""Bundle applier -- reconciles a desired file set against a directory tree.

Quick usage::

    from blueprint_writer.bundle import OverwriteMode, apply_bundle

    summary = apply_bundle(
        "./site",
        manifest=[{"path": "a/b.txt", "mode": "file", "size": 5}],
        files=[{"path": "a/b.txt", "contentsBase64": "aGVsbG8="}],
        overwrite_mode=OverwriteMode.BACKUP,
    )
"""

from blueprint_writer.bundle.applier import apply_bundle, unique_backup_path
from blueprint_writer.bundle.models import (
    BundleFile,
    JobResultSummary,
    ManifestEntry,
    OverwriteMode,
)

__all__ = [
    "BundleFile",
    "JobResultSummary",
    "ManifestEntry",
    "OverwriteMode",
    "apply_bundle",
    "unique_backup_path",
]
