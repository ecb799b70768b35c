"""
Agent Errors
============

Every failure that belongs to a single job is raised as an AgentError
subclass. The driver maps any of them to a failure ResultMetadata, so
nothing raised while processing one job can stop the polling loop.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base class for job-level agent failures."""


class SetupError(AgentError):
    """Output directory or path resolution failed before the container ran."""


class ExecutionError(AgentError):
    """The container runtime failed to create, start or wait on a container."""


class ReportError(AgentError):
    """The coordinator did not acknowledge a submitted result."""

    def __init__(self, message: str, permanent: bool = False):
        super().__init__(message)
        # True when resubmitting the same result can never succeed (4xx)
        self.permanent = permanent
