from pathlib import Path


class PathEscapeError(ValueError):
    """A resolved path would land outside the project root."""


def resolve_within_root(root: Path, rel_path: str) -> Path:
    # Normalize root to avoid false "escape" on platforms where `resolve()`
    # canonicalizes paths (e.g., macOS /var -> /private/var).
    root = root.resolve()
    p = (root / rel_path).resolve()
    if root != p and root not in p.parents:
        raise PathEscapeError(f"Path escapes project root: {rel_path}")
    return p
