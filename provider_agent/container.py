"""
Container Executor
==================

Runs one job inside a fresh Docker container.

Lifecycle per job:
  1. Create <output_root>/<job_id> on the host
  2. docker create  job-<job_id>, host dir bind-mounted read-write at /out
  3. docker start, then docker wait until the container is no longer running
  4. Capture stdout / stderr tails
  5. docker rm -f   (best effort, always attempted)

Any failure in 1-3 is raised as SetupError / ExecutionError for the driver
to turn into a failure result.

Hardening gap:
  No CPU, memory, PID or network limits are applied to the container.
  A misbehaving workload can exhaust host resources. Production deployments
  must add limits (mem_limit, nano_cpus, pids_limit, network_mode) or run
  the agent on a dedicated host.
"""

from __future__ import annotations
import logging
import time
from pathlib import Path
from typing import Optional

import requests
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from urllib3.exceptions import ReadTimeoutError

from .errors import ExecutionError, SetupError
from .jobs import ExecutionOutcome, Job, tail
from .paths import ensure_job_output_dir

log = logging.getLogger(__name__)

CONTAINER_LABEL = "provider-agent.job-id"


def container_name(job_id: str) -> str:
    return f"job-{job_id}"


def _is_read_timeout(exc: BaseException) -> bool:
    """True when a docker wait expired, as opposed to the daemon connection failing."""
    if isinstance(exc, requests.exceptions.ReadTimeout):
        return True
    # Older docker-py / urllib3 combinations wrap the socket timeout in a ConnectionError
    if isinstance(exc, requests.ConnectionError):
        return any(isinstance(arg, ReadTimeoutError) for arg in exc.args)
    return False


class ContainerExecutor:
    def __init__(
        self,
        client,
        output_root:     Path,
        mount_point:     str = "/out",
        default_timeout: Optional[float] = None,
    ):
        self.client          = client
        self.output_root     = Path(output_root)
        self.mount_point     = mount_point
        self.default_timeout = default_timeout

    # ─── Runtime ──────────────────────────────────────────────────────────────

    def ping(self) -> None:
        """Raise ExecutionError if the Docker daemon is unreachable."""
        try:
            self.client.ping()
        except (DockerException, requests.RequestException) as e:
            raise ExecutionError(f"Docker daemon unreachable: {e}") from e

    # ─── Execution ────────────────────────────────────────────────────────────

    def execute(self, job: Job) -> ExecutionOutcome:
        if not job.image:
            raise SetupError(f"Job {job.job_id} has no image")

        output_dir = ensure_job_output_dir(self.output_root, job.job_id)
        log.info(f"[executor] Job {job.job_id}: image={job.image} cmd={list(job.cmd)} out={output_dir}")

        container = self._create(job, output_dir)
        try:
            started = time.monotonic()
            try:
                container.start()
            except (DockerException, requests.RequestException) as e:
                raise ExecutionError(f"Failed to start container: {e}") from e

            exit_code = self._wait(container, job)
            runtime = time.monotonic() - started
            stdout, stderr = self._logs(container)
        finally:
            self._remove(container)

        log.info(f"[executor] Job {job.job_id} exited with status {exit_code} after {runtime:.1f}s")
        return ExecutionOutcome(
            exit_code   = exit_code,
            stdout_tail = stdout,
            stderr_tail = stderr,
            runtime_sec = round(runtime, 3),
        )

    def _create(self, job: Job, output_dir: Path):
        kwargs = dict(
            command = list(job.cmd) or None,
            name    = container_name(job.job_id),
            volumes = {str(output_dir): {"bind": self.mount_point, "mode": "rw"}},
            labels  = {CONTAINER_LABEL: job.job_id},
        )
        try:
            try:
                return self.client.containers.create(job.image, **kwargs)
            except ImageNotFound:
                log.info(f"[executor] Image {job.image} not present locally — pulling")
                self.client.images.pull(job.image)
                return self.client.containers.create(job.image, **kwargs)
            except APIError as e:
                if e.status_code != 409:
                    raise
                # Leftover container with the same name from an earlier run
                self._remove_by_name(kwargs["name"])
                return self.client.containers.create(job.image, **kwargs)
        except (DockerException, requests.RequestException) as e:
            raise ExecutionError(f"Failed to create container from image {job.image!r}: {e}") from e

    def _wait(self, container, job: Job) -> int:
        timeout = job.timeout_sec or self.default_timeout
        try:
            status = container.wait(timeout=timeout)
        except APIError as e:
            raise ExecutionError(f"Failed waiting on container: {e}") from e
        except (DockerException, requests.RequestException) as e:
            if timeout is not None and _is_read_timeout(e):
                self._kill(container)
                raise ExecutionError(f"Job {job.job_id} exceeded timeout of {timeout:g}s") from e
            raise ExecutionError(f"Failed waiting on container: {e}") from e

        if status.get("Error"):
            log.warning(f"[executor] Wait reported error for job {job.job_id}: {status['Error']}")
        return int(status.get("StatusCode", -1))

    def _logs(self, container) -> tuple[str, str]:
        try:
            stdout = container.logs(stdout=True, stderr=False)
            stderr = container.logs(stdout=False, stderr=True)
        except (DockerException, requests.RequestException) as e:
            log.warning(f"[executor] Failed to capture container logs: {e}")
            return "", ""
        return (
            tail(stdout.decode("utf-8", errors="replace")),
            tail(stderr.decode("utf-8", errors="replace")),
        )

    # ─── Cleanup ──────────────────────────────────────────────────────────────

    def _kill(self, container) -> None:
        try:
            container.kill()
        except (DockerException, requests.RequestException) as e:
            log.error(f"[executor] Failed to kill container {container.name}: {e}")

    def _remove(self, container) -> None:
        try:
            container.remove(force=True)
            log.debug(f"[executor] Container {container.name} removed")
        except (DockerException, requests.RequestException) as e:
            log.warning(f"[executor] Failed to remove container {container.name}: {e}")

    def _remove_by_name(self, name: str) -> None:
        try:
            self.client.containers.get(name).remove(force=True)
            log.warning(f"[executor] Removed stale container {name}")
        except NotFound:
            pass
