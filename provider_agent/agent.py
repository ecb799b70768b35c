"""
Provider Agent — Main Daemon
============================

The entry point for the provider-side daemon.

Startup sequence:
  1. Load config (file → env → flags)
  2. Connect to Docker and ping the daemon (unreachable → exit 1)
  3. Re-submit results a previous run computed but never got acknowledged
  4. Poll the coordinator for MATCHED jobs every poll_interval seconds
  5. Run each job to completion, one at a time, and report its result

Per job:  MATCHED → RUNNING → COLLECTING → REPORTED
A job that fails at any stage is reported with a failure result; nothing a
single job does can stop the loop.

Shutdown:
  SIGTERM / SIGINT → finish the current cycle → close Docker client → exit
"""

from __future__ import annotations
import argparse
import enum
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Callable, Optional

import docker
from docker.errors import DockerException

from .artifacts import ArtifactCollector
from .config import CONFIG_PATH, AgentConfig, build_config, load_config, save_config
from .container import ContainerExecutor
from .coordinator import CoordinatorClient
from .errors import AgentError, ReportError
from .jobs import Job, ResultMetadata
from .paths import job_output_dir
from .results import build_from_error, build_success
from .spool import ResultSpool

log = logging.getLogger("provider_agent.agent")

LOG_FORMAT  = "[%(asctime)s] %(levelname)s %(name)s — %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"


class JobState(enum.Enum):
    MATCHED    = "MATCHED"
    RUNNING    = "RUNNING"
    COLLECTING = "COLLECTING"
    REPORTED   = "REPORTED"


# ─── Provider Agent ───────────────────────────────────────────────────────────

class ProviderAgent:
    def __init__(
        self,
        config:      AgentConfig,
        coordinator: CoordinatorClient,
        executor:    ContainerExecutor,
        collector:   ArtifactCollector,
        spool:       Optional[ResultSpool] = None,
        sleep:       Callable[[float], None] = time.sleep,
    ):
        self.config      = config
        self.coordinator = coordinator
        self.executor    = executor
        self.collector   = collector
        self.spool       = spool
        self._sleep      = sleep
        self._running    = True

    def _transition(self, job_id: str, state: JobState):
        log.debug(f"[agent] Job {job_id} → {state.value}")

    # ─── Job Pipeline ─────────────────────────────────────────────────────────

    def process_job(self, job: Job) -> ResultMetadata:
        """Run one job and build its terminal result. Never raises for job-level errors."""
        self._transition(job.job_id, JobState.MATCHED)
        started = time.monotonic()
        try:
            self._transition(job.job_id, JobState.RUNNING)
            outcome = self.executor.execute(job)

            self._transition(job.job_id, JobState.COLLECTING)
            artifacts = []
            if outcome.exit_code == 0:
                output_dir = job_output_dir(Path(self.config.output_root), job.job_id)
                artifacts = self.collector.collect(job, output_dir)
            else:
                log.warning(f"[agent] Job {job.job_id} exited {outcome.exit_code} — skipping artifact collection")

            return build_success(job, outcome, artifacts, started)
        except AgentError as e:
            log.error(f"[agent] Job {job.job_id} failed: {e}")
            return build_from_error(job.job_id, e)
        except Exception as e:
            log.exception(f"[agent] Unexpected error while processing job {job.job_id}")
            return build_from_error(job.job_id, e)

    def report(self, result: ResultMetadata) -> bool:
        """Submit a result. Returns False if the coordinator did not acknowledge it."""
        if self.spool is not None:
            try:
                self.spool.record(result)
            except OSError as e:
                log.error(f"[agent] Could not spool result for job {result.job_id}: {e}")

        accepted = True
        try:
            self.coordinator.submit_result(result)
        except ReportError as e:
            log.error(f"[agent] {e}")
            if not e.permanent:
                # Not retried this run; the spooled copy is re-sent on next startup
                return False
            accepted = False
        finally:
            self._transition(result.job_id, JobState.REPORTED)

        if self.spool is not None:
            try:
                self.spool.acknowledge(result.job_id)
            except OSError as e:
                log.error(f"[agent] Could not record acknowledgement for job {result.job_id}: {e}")
        return accepted

    def handle(self, raw: dict) -> Optional[ResultMetadata]:
        """Process and report one raw job descriptor. Never raises."""
        try:
            return self._handle(raw)
        except Exception:
            log.exception(f"[agent] Unexpected error while handling job descriptor {str(raw)[:200]}")
            return None

    def _handle(self, raw: dict) -> Optional[ResultMetadata]:
        try:
            job = Job.from_payload(raw)
        except Exception as e:
            job_id = (raw.get("jobId") or raw.get("job_id") or raw.get("id")) if isinstance(raw, dict) else None
            log.error(f"[agent] Rejected job descriptor: {e}")
            if not isinstance(job_id, str) or not job_id:
                return None
            result = build_from_error(job_id, e)
        else:
            log.info(f"[agent] Processing job {job.job_id}")
            result = self.process_job(job)

        self.report(result)
        log.info(f"[agent] Job {result.job_id} → exit {result.exit_code}, {len(result.artifacts)} artifact(s)")
        return result

    # ─── Main Loop ────────────────────────────────────────────────────────────

    def run_once(self) -> int:
        """One poll/execute/report cycle. Returns the number of jobs handled."""
        handled = 0
        for raw in self.coordinator.poll_jobs():
            if self.handle(raw) is not None:
                handled += 1
        return handled

    def recover(self) -> int:
        if self.spool is None:
            return 0
        return self.spool.flush(self.coordinator.submit_result)

    def run(self, max_cycles: Optional[int] = None):
        log.info(f"Provider agent starting — provider {self.config.provider}")
        log.info(f"Coordinator: {self.config.coordinator_url}")
        log.info(f"Outputs:     {Path(self.config.output_root).resolve()}")

        self.recover()
        log.info(f"Agent ready. Polling for jobs every {self.config.poll_interval:g}s… (Ctrl+C to stop)")

        cycles = 0
        while self._running:
            handled = self.run_once()
            if handled:
                log.info(f"[agent] Cycle complete — {handled} job(s) handled")

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if self._running:
                log.debug(f"[agent] Waiting {self.config.poll_interval:g}s for next poll")
                self._sleep(self.config.poll_interval)

        log.info("Agent stopped.")

    def stop(self):
        self._running = False


# ─── Entry Point ──────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute marketplace provider agent")
    parser.add_argument("--config",          type=Path, default=CONFIG_PATH,
                        help=f"JSON config file (default: {CONFIG_PATH})")
    parser.add_argument("--coordinator-url", help="Coordinator base URL")
    parser.add_argument("--provider",        help="Provider address jobs are matched to")
    parser.add_argument("--poll",            type=float, dest="poll_interval",
                        help="Job poll interval in seconds (default: 5)")
    parser.add_argument("--output-dir",      dest="output_root",
                        help="Root directory for per-job outputs (default: ./outputs)")
    parser.add_argument("--job-timeout",     type=float,
                        help="Kill containers running longer than this many seconds")
    parser.add_argument("--log-level",       choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--save-config",     action="store_true",
                        help="Write the effective configuration to --config and continue")
    return parser


def main(argv: Optional[list[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        config = build_config(
            file_cfg  = load_config(args.config),
            overrides = {
                "coordinator_url": args.coordinator_url,
                "provider":        args.provider,
                "poll_interval":   args.poll_interval,
                "output_root":     args.output_root,
                "job_timeout":     args.job_timeout,
                "log_level":       args.log_level,
            },
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level   = getattr(logging, config.log_level.upper(), logging.INFO),
        format  = LOG_FORMAT,
        datefmt = LOG_DATEFMT,
    )

    if args.save_config:
        save_config(args.config, config.to_dict())
        log.info(f"Configuration saved to {args.config}")

    try:
        Path(config.output_root).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.error(f"Failed to create output directory {config.output_root}: {e}")
        sys.exit(1)

    try:
        client = docker.from_env()
    except DockerException as e:
        log.error(f"Failed to create Docker client: {e}")
        sys.exit(1)

    coordinator = CoordinatorClient(config.coordinator_url, config.provider, timeout=config.request_timeout)
    try:
        executor = ContainerExecutor(
            client,
            output_root     = Path(config.output_root),
            mount_point     = config.mount_point,
            default_timeout = config.job_timeout,
        )
        try:
            executor.ping()
        except AgentError as e:
            log.error(str(e))
            sys.exit(1)
        log.info("Connected to Docker")

        agent = ProviderAgent(
            config      = config,
            coordinator = coordinator,
            executor    = executor,
            collector   = ArtifactCollector(config.artifact_uri_prefix, config.mount_point),
            spool       = ResultSpool(config.resolved_spool_path),
        )

        signal.signal(signal.SIGTERM, lambda s, f: agent.stop())
        signal.signal(signal.SIGINT,  lambda s, f: agent.stop())

        agent.run()
    finally:
        coordinator.close()
        client.close()


if __name__ == "__main__":
    main()
