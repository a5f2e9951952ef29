from __future__ import annotations

import os
from pathlib import Path


def project_relpath(root: Path, p: Path) -> str:
    """Return p relative to root as a POSIX string.

    Both paths are made absolute (without resolving symlinks) so that on-disk
    and in-memory file sets keyed through this function agree. Raises
    ValueError when p is not located under root.
    """

    root_abs = Path(os.path.abspath(root))
    p_abs = Path(os.path.abspath(p))
    try:
        rel = p_abs.relative_to(root_abs)
    except ValueError as e:
        raise ValueError(f"path {p} is not within {root}") from e
    rel_posix = rel.as_posix()
    if rel_posix in ("", "."):
        raise ValueError(f"path {p} is the root itself, not a file within it")
    return rel_posix


def resolve_under(base: Path | None, raw: str) -> Path:
    """Resolve a configured path string against base unless it is absolute."""

    if not isinstance(raw, str) or not raw:
        raise ValueError("path missing/empty")
    if "\x00" in raw:
        raise ValueError("path contains NUL")
    p = Path(raw)
    if p.is_absolute() or base is None:
        return p
    return base / p
