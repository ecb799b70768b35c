"""
Result Spool
============

Append-only JSONL log of results that were computed but not yet
acknowledged by the coordinator.

  {"op": "pending", "result": {...}}   written before submission
  {"op": "ack",     "jobId":  "..."}   written after the coordinator accepted it

On startup the agent replays the log and re-submits anything still
pending, so a crash or network partition between finishing a job and
reporting it does not lose the result. Every acknowledgement compacts the
log down to the entries still pending; once nothing is pending the file
is removed.
"""

from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Callable

from .errors import ReportError
from .jobs import ResultMetadata

log = logging.getLogger(__name__)


def _line(entry: dict) -> str:
    return json.dumps(entry, separators=(",", ":")) + "\n"


class ResultSpool:
    def __init__(self, path: Path):
        self.path = Path(path)

    def _ends_torn(self) -> bool:
        try:
            with open(self.path, "rb") as f:
                f.seek(0, os.SEEK_END)
                if f.tell() == 0:
                    return False
                f.seek(-1, os.SEEK_END)
                return f.read(1) != b"\n"
        except FileNotFoundError:
            return False

    def _append(self, entry: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Terminate a line left unfinished by a crash so this entry starts clean
        prefix = "\n" if self._ends_torn() else ""
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(prefix + _line(entry))
            f.flush()
            os.fsync(f.fileno())

    def _rewrite(self, results: list[ResultMetadata]) -> None:
        """Atomically replace the log with one pending entry per result."""
        if not results:
            self.clear()
            return
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            for result in results:
                f.write(_line({"op": "pending", "result": result.to_payload()}))
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(self.path)

    def record(self, result: ResultMetadata) -> None:
        self._append({"op": "pending", "result": result.to_payload()})

    def acknowledge(self, job_id: str) -> None:
        self._append({"op": "ack", "jobId": job_id})
        self._rewrite(self.pending())

    def pending(self) -> list[ResultMetadata]:
        """Results recorded but never acknowledged, oldest first."""
        if not self.path.exists():
            return []

        pending: dict[str, ResultMetadata] = {}
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                    if entry["op"] == "pending":
                        result = ResultMetadata.from_payload(entry["result"])
                        pending.pop(result.job_id, None)
                        pending[result.job_id] = result
                    elif entry["op"] == "ack":
                        pending.pop(entry["jobId"], None)
                except (ValueError, KeyError, TypeError) as e:
                    # A torn line from a crash mid-write
                    log.warning(f"[spool] Ignoring malformed entry at {self.path}:{lineno}: {e}")
        return list(pending.values())

    def flush(self, submit: Callable[[ResultMetadata], None]) -> int:
        """
        Re-submit every pending result. Returns how many were accepted.

        Transient failures stay pending for the next startup; results the
        coordinator rejects permanently are dropped.
        """
        results = self.pending()
        if not results:
            return 0

        log.info(f"[spool] Re-submitting {len(results)} unacknowledged result(s)")
        sent = 0
        for result in results:
            try:
                submit(result)
            except ReportError as e:
                if not e.permanent:
                    log.error(f"[spool] {e}")
                    continue
                log.error(f"[spool] Dropping result the coordinator will never accept: {e}")
            else:
                sent += 1
            self.acknowledge(result.job_id)
        return sent

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
