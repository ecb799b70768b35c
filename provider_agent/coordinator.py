"""
Coordinator Client
==================

HTTP+JSON calls to the coordinator:

  GET  /jobs?status=MATCHED&provider=<addr>   → {"jobs": [...]}
  POST /results                               ← ResultMetadata payload

Polling never raises — an unreachable coordinator just means no jobs this
cycle. Submitting raises ReportError so the caller can keep the result;
4xx rejections other than 408/425/429 are marked permanent.
"""

from __future__ import annotations
import logging
from typing import Optional

import requests

from .errors import ReportError
from .jobs import ResultMetadata

log = logging.getLogger(__name__)

MATCHED_STATUS = "MATCHED"

# 4xx responses that may succeed if the same result is sent again later
RETRYABLE_STATUSES = {408, 425, 429}


class CoordinatorClient:
    def __init__(
        self,
        base_url: str,
        provider: str,
        timeout:  float = 10,
        session:  Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider = provider
        self.timeout  = timeout
        self.session  = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Content-Type":    "application/json",
            "X-Provider-Addr": self.provider,
        }

    # ─── Poll ─────────────────────────────────────────────────────────────────

    def poll_jobs(self, status: str = MATCHED_STATUS) -> list[dict]:
        """Return raw job descriptors matched to this provider."""
        try:
            resp = self.session.get(
                f"{self.base_url}/jobs",
                params  = {"status": status, "provider": self.provider},
                headers = self._headers(),
                timeout = self.timeout,
            )
        except requests.Timeout:
            log.warning("[coordinator] Job poll timed out")
            return []
        except requests.RequestException as e:
            log.error(f"[coordinator] Job poll failed: {e}")
            return []

        if resp.status_code != 200:
            log.error(f"[coordinator] Poll returned {resp.status_code}: {resp.text[:200]}")
            return []

        try:
            jobs = resp.json().get("jobs") or []
        except (ValueError, AttributeError) as e:
            log.error(f"[coordinator] Could not decode jobs response: {e}")
            return []

        if not isinstance(jobs, list):
            log.error(f"[coordinator] Unexpected jobs field: {type(jobs).__name__}")
            return []

        log.info(f"[coordinator] Found {len(jobs)} matched job(s)")
        return jobs

    # ─── Report ───────────────────────────────────────────────────────────────

    def submit_result(self, result: ResultMetadata) -> None:
        try:
            resp = self.session.post(
                f"{self.base_url}/results",
                json    = result.to_payload(),
                headers = self._headers(),
                timeout = self.timeout,
            )
        except requests.RequestException as e:
            raise ReportError(f"Result submission for job {result.job_id} failed: {e}") from e

        if not resp.ok:
            raise ReportError(
                f"Result submission for job {result.job_id} rejected: "
                f"{resp.status_code} {resp.text[:200]}",
                permanent = 400 <= resp.status_code < 500 and resp.status_code not in RETRYABLE_STATUSES,
            )
        log.info(f"[coordinator] Results submitted for job {result.job_id}")

    def close(self) -> None:
        self.session.close()
