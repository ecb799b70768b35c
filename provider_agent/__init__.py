"""
Provider Agent
==============

The daemon that runs on a compute provider's machine.

What it does:
  1. Poll the coordinator for jobs matched to this provider
  2. Run each job inside a fresh Docker container, one at a time
  3. Hash the job's declared output files (SHA-256) into artifacts
  4. Report one result per job: exit code, output tails, runtime, artifacts

Isolation model:
  - Every job gets its own container (job-<id>) and its own host output
    directory, bind-mounted read-write at /out
  - Job ids and declared output paths are validated so nothing can be read
    or written outside that directory
  - No CPU / memory / network limits are applied to the container. Treat
    this as a denial-of-service exposure on shared hosts.

Known limitation:
  Results are spooled to disk before submission and re-sent on the next
  startup. A result is lost only if the spool file itself is lost.

Usage:
  provider-agent --coordinator-url http://localhost:8080 --provider <addr>
  python -m provider_agent.agent --provider <addr>
"""

__version__ = "0.1.0"
