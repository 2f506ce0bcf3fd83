from __future__ import annotations

import os


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    if any(q == ".." for q in parts):
        raise ValueError(f"Path may not contain '..': {p}")
    return "/".join(parts)


def archive_name(root: str, path: str) -> str:
    """Name under which a file below ``root`` is stored in an archive."""
    return norm_path(os.path.relpath(path, root).replace(os.sep, "/"))


def dest_path(outdir: str, name: str) -> str:
    """Filesystem destination for archive entry ``name`` under ``outdir``.

    Raises ValueError for names that are empty after normalization, climb out
    with '..', or start with a drive specifier such as 'C:'.
    """
    rel = norm_path(name)
    if not rel:
        raise ValueError(f"Empty path: {name!r}")
    parts = rel.split("/")
    if parts[0].endswith(":"):
        raise ValueError(f"Path may not name a drive: {name}")
    return os.path.join(outdir or ".", *parts)
