from __future__ import annotations

from .errors import UnsafePathError


def norm_member_path(p: str) -> str:
    """Normalize an entry name before it is used as an extraction target.

    Rules:
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments and names that normalize to nothing
    """
    parts = [q for q in p.strip("/").split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise UnsafePathError(f"{p}: path may not contain '..'")
    if not parts:
        raise UnsafePathError(f"{p!r}: empty entry name")
    return "/".join(parts)
