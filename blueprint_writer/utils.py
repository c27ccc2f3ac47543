"""Shared utility functions for the blueprint writer.

Provides path canonicalisation and allow-list containment, content digests,
JSON I/O, name helpers, and Rich-based progress reporting.  The path helpers
are the single place where the "no write escapes an allowed root" rule is
enforced; every writer routes through :func:`sanitize_target_path`.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from .errors import SecurityError

console = Console()
debug_console = Console(stderr=True)

ALLOWED_ROOTS_ENV = "BLUEPRINT_ALLOWED_ROOTS"
DEBUG_ENV = "BLUEPRINT_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}

# Set by debug_scope; None defers to BLUEPRINT_DEBUG.
_debug_override: ContextVar[bool | None] = ContextVar("blueprint_debug", default=None)

# ---------------------------------------------------------------------------
# Time & digests
# ---------------------------------------------------------------------------


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def sha256_hex(data: bytes) -> str:
    """Hex SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def file_sha256(path: str | Path) -> str:
    """Hex SHA-256 digest of a file's contents."""
    return sha256_hex(Path(path).read_bytes())


# ---------------------------------------------------------------------------
# Path canonicalisation & containment
# ---------------------------------------------------------------------------


def normalize_rel_path(path: str) -> str:
    """Unify separators and strip leading slashes from a bundle path.

    Examples::

        normalize_rel_path("\\\\a\\\\b.txt") -> "a/b.txt"
        normalize_rel_path("/src/app") -> "src/app"
    """
    normalized = path.replace("\\", "/")
    return normalized.lstrip("/")


def has_parent_segment(path: str) -> bool:
    """Return ``True`` if a normalised relative path contains a ``..`` segment."""
    return any(part == ".." for part in normalize_rel_path(path).split("/"))


def is_path_inside(parent: str | Path, child: str | Path) -> bool:
    """Return ``True`` if *child* is strictly below *parent* (both resolved)."""
    parent_path = Path(parent).resolve()
    child_path = Path(child).resolve()
    return child_path != parent_path and child_path.is_relative_to(parent_path)


def sanitize_target_path(allowed_roots: list[str | Path], candidate: str | Path) -> Path:
    """Resolve *candidate* and ensure it sits at or below one of *allowed_roots*.

    Raises:
        SecurityError: If the resolved path escapes every allowed root.
    """
    resolved = Path(candidate).resolve()
    for root in allowed_roots:
        resolved_root = Path(root).resolve()
        if resolved == resolved_root or is_path_inside(resolved_root, resolved):
            return resolved
    raise SecurityError(str(resolved))


def parse_allowed_roots(raw: str | None = None) -> list[Path]:
    """Parse a comma-separated list of allowed roots.

    Falls back to ``BLUEPRINT_ALLOWED_ROOTS`` when *raw* is ``None`` and to the
    current working directory when nothing is configured.
    """
    if raw is None:
        raw = os.environ.get(ALLOWED_ROOTS_ENV, "")
    if not raw.strip():
        return [Path.cwd().resolve()]
    return [Path(p.strip()).resolve() for p in raw.split(",") if p.strip()]


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist.

    Returns:
        The resolved ``Path`` object.
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path.resolve()


def write_text_if_absent(path: Path, content: str) -> bool:
    """Write *content* to *path* unless the file already exists.

    Returns:
        ``True`` if the file was written.
    """
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def safe_slug(value: str | None, default: str = "page") -> str:
    """Convert an arbitrary view/page/API name to a filesystem-safe slug.

    Examples::

        safe_slug("About Us") -> "about_us"
        safe_slug("2024 Plans") -> "p_2024_plans"
        safe_slug("") -> "page"
    """
    slug = re.sub(r"[^a-z0-9]", "_", (value or "").lower())
    slug = re.sub(r"_+", "_", slug).strip("_")
    if not slug:
        slug = default
    if slug[0].isdigit():
        slug = f"p_{slug}"
    return slug


def pascal_case(value: str) -> str:
    """Convert ``some_thing`` or ``some-thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def package_name(value: str | None, default: str = "blueprint-app") -> str:
    """Lower-case npm-style package name, at most 64 characters."""
    name = re.sub(r"[^a-z0-9-_]", "-", (value or "").lower())[:64]
    return name or default


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> dict[str, Any]:
    """Load and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return {"_root": data}
    return data


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


STAGE_COLORS: dict[str, str] = {
    "validate": "bright_cyan",
    "package": "cyan",
    "skeleton": "cyan",
    "defaultapp": "blue",
    "components": "blue",
    "schema": "bright_yellow",
    "media": "bright_magenta",
    "views": "bright_green",
    "design": "green",
    "apis": "bright_red",
    "docs": "bright_blue",
}


def is_debug_enabled() -> bool:
    """Return ``True`` when debug output is on for the current context.

    An enclosing :func:`debug_scope` wins; otherwise ``BLUEPRINT_DEBUG`` decides.
    """
    override = _debug_override.get()
    if override is not None:
        return override
    return os.environ.get(DEBUG_ENV, "").strip().lower() in _TRUTHY


@contextmanager
def debug_scope(enabled: bool) -> Iterator[None]:
    """Turn debug output on or off for code running inside the block.

    The setting is context-local, so tasks started inside the block (for
    example by ``asyncio.gather``) inherit it.
    """
    token = _debug_override.set(enabled)
    try:
        yield
    finally:
        _debug_override.reset(token)


def debug_log(message: str, enabled: bool | None = None) -> None:
    """Print a dim, timestamped diagnostic line to stderr when debugging is on."""
    if enabled is None:
        enabled = is_debug_enabled()
    if not enabled:
        return
    debug_console.print(f"[dim][{now_iso()}] {message}[/dim]", highlight=False)


def print_stage_header(index: int, name: str) -> None:
    """Print a full-width rule announcing a pipeline stage."""
    color = STAGE_COLORS.get(name, "white")
    console.print(
        Rule(f"[bold {color}] Stage {index}: {name.upper()} [/bold {color}]", style=color)
    )


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
