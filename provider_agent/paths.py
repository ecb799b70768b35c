"""
Output Paths
============

Host-side filesystem layout for job outputs:

  <output_root>/<job_id>/        bind-mounted read-write at /out in the container

Job ids and declared output paths come from the coordinator and are
treated as untrusted. Both are checked here before they touch the host
filesystem.
"""

from __future__ import annotations
import logging
import re
from pathlib import Path, PurePosixPath
from typing import Optional

from .errors import SetupError

log = logging.getLogger(__name__)

# Same alphabet Docker accepts for container names, so job-<id> is always valid
_JOB_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def validate_job_id(job_id: str) -> str:
    if not isinstance(job_id, str) or not _JOB_ID_RE.match(job_id) or ".." in job_id:
        raise SetupError(f"Invalid job id {job_id!r}: must match {_JOB_ID_RE.pattern}")
    return job_id


def job_output_dir(output_root: Path, job_id: str) -> Path:
    """Absolute per-job output directory. Does not create it."""
    validate_job_id(job_id)
    try:
        root = Path(output_root).resolve()
    except (OSError, RuntimeError) as e:
        raise SetupError(f"Failed to resolve output root {output_root}: {e}") from e
    return root / job_id


def ensure_job_output_dir(output_root: Path, job_id: str) -> Path:
    job_dir = job_output_dir(output_root, job_id)
    try:
        job_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Failed to create output directory {job_dir}: {e}") from e
    return job_dir


def relative_output_path(declared: str, mount_point: str = "/out") -> Optional[str]:
    """
    Map a declared output path to a path relative to the job output dir.

    "/result.txt" and "/out/result.txt" both map to "result.txt".
    Returns None for paths that are empty or contain ".." segments.
    """
    mount = mount_point.rstrip("/")
    path = declared
    if mount and (path == mount or path.startswith(mount + "/")):
        path = path[len(mount):]

    parts = PurePosixPath(path.lstrip("/")).parts
    if not parts or ".." in parts:
        return None
    return "/".join(p for p in parts if p != ".") or None


def resolve_output_path(job_dir: Path, declared: str, mount_point: str = "/out") -> Optional[Path]:
    """
    Resolve a declared output to a host path inside job_dir.

    Returns None when the path is rejected, including symlinks that point
    outside the job directory.
    """
    relative = relative_output_path(declared, mount_point)
    if relative is None:
        log.warning(f"[paths] Rejected output path {declared!r}: escapes job output root")
        return None

    root = job_dir.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        log.warning(f"[paths] Rejected output path {declared!r}: resolves outside {root}")
        return None
    return candidate
