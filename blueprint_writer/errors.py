"""Error taxonomy for the blueprint writer.

Fatal errors (``ValidationError``, ``SecurityError``) surface immediately and
abort the remaining work of the call that raised them.  Non-fatal classes
(``ConflictError``, ``UnsupportedOperationError``, ``CollaboratorError``) are
normally captured into a result summary or an inline warning rather than
raised; they exist so callers that *want* a hard failure can ask for one.
"""

from __future__ import annotations


class BlueprintWriterError(Exception):
    """Base exception for the blueprint writer."""


class ValidationError(BlueprintWriterError, ValueError):
    """A required blueprint or code section is missing or malformed.

    Also covers unknown dialect and overwrite-mode names.  Always raised
    before any file is written.
    """


class SecurityError(BlueprintWriterError):
    """A resolved path escapes the allow-listed roots.

    Aborts the whole bundle application; nothing is written.
    """

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"Target path is outside of allowed roots: {path}")


class ConflictError(BlueprintWriterError):
    """Existing content differs from the desired content under the ``fail`` policy."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = list(paths)
        super().__init__(f"{len(self.paths)} conflicting file(s): {', '.join(self.paths)}")


class UnsupportedOperationError(BlueprintWriterError):
    """A dialect cannot express a schema change safely."""

    def __init__(self, dialect: str, operation: str, target: str) -> None:
        self.dialect = dialect
        self.operation = operation
        self.target = target
        super().__init__(f"{dialect} doesn't support {operation} ({target})")


class CollaboratorError(BlueprintWriterError):
    """An external collaborator (media fetch, email) failed for one item."""

    def __init__(self, collaborator: str, item: str, reason: str) -> None:
        self.collaborator = collaborator
        self.item = item
        self.reason = reason
        super().__init__(f"{collaborator} failed for {item}: {reason}")
