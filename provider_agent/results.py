"""
Result Builder
==============

Pure assembly of the terminal ResultMetadata for a job. No I/O.

Every agent-side failure (bad job id, Docker errors, unexpected
exceptions) maps to the same shape: no artifacts, zero runtime,
AGENT_FAILURE_EXIT_CODE, and the error text in stderr_tail so the
coordinator can show it.
"""

from __future__ import annotations
import time
from typing import Iterable, Optional

from .errors import AgentError
from .jobs import Artifact, ExecutionOutcome, Job, ResultMetadata, tail

# Containers exit 0-255; -1 can only mean the agent itself failed
AGENT_FAILURE_EXIT_CODE = -1


def build_success(
    job:        Job,
    outcome:    ExecutionOutcome,
    artifacts:  Iterable[Artifact],
    started_at: float,
    now:        Optional[float] = None,
) -> ResultMetadata:
    """
    Result for a job whose container ran to completion.

    `started_at` / `now` are time.monotonic() readings. Artifacts are only
    kept when the container exited 0.
    """
    now = time.monotonic() if now is None else now
    return ResultMetadata(
        job_id      = job.job_id,
        artifacts   = tuple(artifacts) if outcome.exit_code == 0 else (),
        stdout_tail = outcome.stdout_tail,
        stderr_tail = outcome.stderr_tail,
        runtime_sec = round(max(0.0, now - started_at), 3),
        exit_code   = outcome.exit_code,
    )


def build_failure(job_id: str, message: str) -> ResultMetadata:
    return ResultMetadata(
        job_id      = job_id,
        artifacts   = (),
        stdout_tail = "",
        stderr_tail = tail(message or "agent error"),
        runtime_sec = 0.0,
        exit_code   = AGENT_FAILURE_EXIT_CODE,
    )


def build_from_error(job_id: str, exc: BaseException) -> ResultMetadata:
    if isinstance(exc, AgentError):
        message = str(exc) or type(exc).__name__
    else:
        message = f"{type(exc).__name__}: {exc}"
    return build_failure(job_id, message)
