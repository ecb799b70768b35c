"""
Artifact Collector
==================

Turns a finished job's declared outputs into content-addressed artifacts.

Rules:
  - Only files the workload wrote under the job output directory are considered
  - Missing outputs are skipped; a job may produce a subset of what it declared
  - The SHA-256 digest covers exactly the bytes on disk; a short or failed
    read drops the artifact instead of reporting a partial hash
  - Same directory contents → same artifact list, every time
"""

from __future__ import annotations
import hashlib
import logging
import os
from pathlib import Path

from .jobs import Artifact, Job
from .paths import relative_output_path, resolve_output_path

log = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def sha256_file(path: Path) -> tuple[str, int]:
    """
    Hash a file in chunks. Returns (hex digest, bytes read).
    Raises OSError if the file changes size while being read.
    """
    digest = hashlib.sha256()
    size = 0
    with open(path, "rb") as f:
        expected = os.fstat(f.fileno()).st_size
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
            size += len(chunk)
    if size != expected:
        raise OSError(f"short read on {path}: expected {expected} bytes, read {size}")
    return digest.hexdigest(), size


class ArtifactCollector:
    def __init__(self, uri_prefix: str = "/outputs", mount_point: str = "/out"):
        self.uri_prefix  = uri_prefix.rstrip("/")
        self.mount_point = mount_point

    def local_uri(self, job_id: str, relative: str) -> str:
        return f"{self.uri_prefix}/{job_id}/{relative}"

    def collect(self, job: Job, output_dir: Path) -> list[Artifact]:
        artifacts = []
        for declared in job.outputs:
            path = resolve_output_path(output_dir, declared, self.mount_point)
            if path is None:
                continue

            if not path.is_file():
                log.warning(f"[collector] Output file not found for job {job.job_id}: {declared}")
                continue

            try:
                sha, size = sha256_file(path)
            except OSError as e:
                log.warning(f"[collector] Skipping unreadable output {declared} for job {job.job_id}: {e}")
                continue

            relative = relative_output_path(declared, self.mount_point)
            artifacts.append(Artifact(
                path      = declared,
                sha256    = sha,
                size      = size,
                local_uri = self.local_uri(job.job_id, relative),
            ))
            log.debug(f"[collector] {declared} → sha256:{sha[:16]}… ({size:,} bytes)")

        log.info(f"[collector] Job {job.job_id}: {len(artifacts)}/{len(job.outputs)} declared output(s) collected")
        return artifacts
