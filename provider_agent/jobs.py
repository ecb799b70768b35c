"""
Job Model
=========

Values exchanged with the coordinator and passed between pipeline stages.

  Job              — received from a poll, immutable
  ExecutionOutcome — raw container termination status
  Artifact         — one hashed output file
  ResultMetadata   — the single terminal record reported per job

Wire format is the coordinator's camelCase JSON; field names here are
snake_case and converted in to_payload() / from_payload().
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Optional

LOG_TAIL_CHARS = 4096


def tail(text: str, limit: int = LOG_TAIL_CHARS) -> str:
    """Keep only the last `limit` characters of captured output."""
    return text[-limit:] if len(text) > limit else text


# ─── Job ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Job:
    job_id:      str
    image:       str
    cmd:         tuple[str, ...]  = ()
    outputs:     tuple[str, ...]  = ()   # Declared paths, in declaration order
    timeout_sec: Optional[float]  = None

    @classmethod
    def from_payload(cls, raw: dict) -> "Job":
        """
        Build a Job from a coordinator job descriptor.

        Outputs may be given as [{"path": "/a"}] (coordinator shape) or as
        plain strings. Raises ValueError when the id or image is missing or
        any field has the wrong shape.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"job descriptor must be an object, got {type(raw).__name__}")

        job_id = raw.get("jobId") or raw.get("job_id") or raw.get("id")
        if not job_id or not isinstance(job_id, str):
            raise ValueError("job descriptor missing jobId")

        image = raw.get("image")
        if not image or not isinstance(image, str):
            raise ValueError(f"job {job_id} missing image")

        cmd = raw.get("cmd") or []
        if not isinstance(cmd, list) or not all(isinstance(c, str) for c in cmd):
            raise ValueError(f"job {job_id} cmd must be a list of strings")

        raw_outputs = raw.get("outputs") or []
        if not isinstance(raw_outputs, list):
            raise ValueError(f"job {job_id} outputs must be a list")

        outputs = []
        for entry in raw_outputs:
            path = entry.get("path") if isinstance(entry, dict) else entry
            if not isinstance(path, str) or not path:
                raise ValueError(f"job {job_id} has an invalid output entry: {entry!r}")
            outputs.append(path)

        timeout = raw.get("timeoutSec")
        if timeout is not None:
            numeric = isinstance(timeout, (int, float)) and not isinstance(timeout, bool)
            if not numeric or not math.isfinite(timeout) or timeout < 0:
                raise ValueError(f"job {job_id} timeoutSec must be a non-negative number, got {timeout!r}")

        return cls(
            job_id      = job_id,
            image       = image,
            cmd         = tuple(cmd),
            outputs     = tuple(outputs),
            timeout_sec = float(timeout) if timeout else None,
        )


# ─── Execution Outcome ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExecutionOutcome:
    exit_code:   int
    stdout_tail: str   = ""
    stderr_tail: str   = ""
    runtime_sec: float = 0.0


# ─── Artifacts & Results ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Artifact:
    path:      str    # As declared by the job
    sha256:    str    # Lowercase hex digest of the bytes on disk
    size:      int
    local_uri: str

    def to_payload(self) -> dict:
        return {
            "path":     self.path,
            "sha256":   self.sha256,
            "size":     self.size,
            "localUri": self.local_uri,
        }

    @classmethod
    def from_payload(cls, raw: dict) -> "Artifact":
        return cls(
            path      = raw["path"],
            sha256    = raw["sha256"],
            size      = int(raw["size"]),
            local_uri = raw["localUri"],
        )


@dataclass(frozen=True)
class ResultMetadata:
    job_id:      str
    artifacts:   tuple[Artifact, ...] = field(default_factory=tuple)
    stdout_tail: str   = ""
    stderr_tail: str   = ""
    runtime_sec: float = 0.0
    exit_code:   int   = 0

    def to_payload(self) -> dict:
        return {
            "jobId":      self.job_id,
            "artifacts":  [a.to_payload() for a in self.artifacts],
            "stdoutTail": self.stdout_tail,
            "stderrTail": self.stderr_tail,
            "runtimeSec": self.runtime_sec,
            "exitCode":   self.exit_code,
        }

    @classmethod
    def from_payload(cls, raw: dict) -> "ResultMetadata":
        return cls(
            job_id      = raw["jobId"],
            artifacts   = tuple(Artifact.from_payload(a) for a in raw.get("artifacts", [])),
            stdout_tail = raw.get("stdoutTail", ""),
            stderr_tail = raw.get("stderrTail", ""),
            runtime_sec = raw.get("runtimeSec", 0),
            exit_code   = int(raw["exitCode"]),
        )
