"""Artifact hashing for reproducibility checks."""

from __future__ import annotations

import hashlib
import pathlib
from collections.abc import Sequence


def hash_file(path: str | pathlib.Path) -> str:
    """Compute SHA256 hash of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):  # 1MB chunks
            h.update(chunk)
    return h.hexdigest()


def write_manifest(
    paths: Sequence[str | pathlib.Path],
    out_manifest: str | pathlib.Path,
    root: str | pathlib.Path | None = None,
) -> None:
    """Write `<hash>  <path>` lines for the given files.

    Paths are written relative to `root` when given, sorted so identical runs
    produce identical manifests.
    """
    manifest_path = pathlib.Path(out_manifest)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)

    entries = []
    for path in paths:
        path_obj = pathlib.Path(path)
        shown = path_obj.relative_to(root) if root is not None else path_obj
        if path_obj.exists():
            entries.append((str(shown), hash_file(path_obj)))
        else:
            entries.append((str(shown), "MISSING"))

    with open(manifest_path, "w") as f:
        for shown, file_hash in sorted(entries):
            f.write(f"{file_hash}  {shown}\n")


def verify_manifest(
    manifest_path: str | pathlib.Path,
    root: str | pathlib.Path | None = None,
) -> dict[str, bool]:
    """Verify files against a hash manifest."""
    results = {}
    base = pathlib.Path(root) if root is not None else None

    with open(manifest_path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue

            parts = line.split("  ", 1)
            if len(parts) != 2:
                continue

            expected_hash, file_path = parts
            if expected_hash == "MISSING":
                results[file_path] = False
                continue

            target = base / file_path if base is not None else pathlib.Path(file_path)
            if not target.exists():
                results[file_path] = False
                continue
            results[file_path] = hash_file(target) == expected_hash

    return results
