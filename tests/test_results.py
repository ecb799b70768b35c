"""
Unit Tests — Result Builder
===========================
Error-to-result mapping and success pass-through. Pure functions, no I/O.
"""
import pytest

from provider_agent.errors import ExecutionError, SetupError
from provider_agent.jobs import LOG_TAIL_CHARS, Artifact, ExecutionOutcome
from provider_agent.results import (
    AGENT_FAILURE_EXIT_CODE,
    build_failure,
    build_from_error,
    build_success,
)

ARTIFACT = Artifact(path="/result.txt", sha256="ab" * 32, size=3, local_uri="/outputs/j1/result.txt")


class TestBuildSuccess:

    def test_passes_outcome_and_artifacts_through(self, make_job):
        outcome = ExecutionOutcome(exit_code=0, stdout_tail="hi\n", stderr_tail="warn\n", runtime_sec=1.0)
        result = build_success(make_job(), outcome, [ARTIFACT], started_at=100.0, now=102.5)

        assert result.job_id == "j1"
        assert result.exit_code == 0
        assert result.artifacts == (ARTIFACT,)
        assert result.stdout_tail == "hi\n"
        assert result.stderr_tail == "warn\n"
        assert result.runtime_sec == 2.5

    def test_real_nonzero_exit_code_propagates_without_artifacts(self, make_job):
        outcome = ExecutionOutcome(exit_code=3, stderr_tail="boom")
        result = build_success(make_job(), outcome, [ARTIFACT], started_at=0.0, now=1.0)

        assert result.exit_code == 3
        assert result.artifacts == ()
        assert result.stderr_tail == "boom"

    def test_runtime_never_negative(self, make_job):
        result = build_success(make_job(), ExecutionOutcome(exit_code=0), [], started_at=10.0, now=5.0)
        assert result.runtime_sec == 0.0


class TestBuildFailure:

    def test_shape(self):
        result = build_failure("j1", "Failed to create container: no such image")

        assert result.job_id == "j1"
        assert result.exit_code == AGENT_FAILURE_EXIT_CODE
        assert result.artifacts == ()
        assert result.runtime_sec == 0.0
        assert result.stdout_tail == ""
        assert result.stderr_tail == "Failed to create container: no such image"

    def test_empty_message_still_diagnostic(self):
        assert build_failure("j1", "").stderr_tail

    def test_long_message_bounded(self):
        result = build_failure("j1", "x" * (LOG_TAIL_CHARS * 2))
        assert len(result.stderr_tail) == LOG_TAIL_CHARS

    @pytest.mark.parametrize("exc, expected", [
        (SetupError("bad job id"), "bad job id"),
        (ExecutionError("start failed"), "start failed"),
        (RuntimeError("kaboom"), "RuntimeError: kaboom"),
        (KeyError("image"), "KeyError: 'image'"),
    ])
    def test_from_error(self, exc, expected):
        result = build_from_error("j1", exc)
        assert result.stderr_tail == expected
        assert result.exit_code == AGENT_FAILURE_EXIT_CODE
        assert result.artifacts == ()

    def test_sentinel_outside_container_exit_range(self):
        assert not 0 <= AGENT_FAILURE_EXIT_CODE <= 255
