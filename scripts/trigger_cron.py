#!/usr/bin/env python3
"""Back-office cron client — call the scheduled-job endpoints.

Jobs:
  1. depreciation     POST /api/v1/cron/depreciation
  2. session-cleanup  POST /api/v1/cron/session-cleanup
  3. health           GET  /api/v1/health/depreciation (no secret needed)

Usage:
    python scripts/trigger_cron.py                              # all jobs against localhost
    python scripts/trigger_cron.py --url https://backoffice.example.com --job depreciation
    CRON_SECRET=... python scripts/trigger_cron.py --json

Exit codes:
    0 = every job succeeded
    1 = one or more jobs failed
    2 = target unreachable
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from typing import Optional

import requests

# ══════════════════════════════════════════════════════════════════════
# Job result model
# ══════════════════════════════════════════════════════════════════════

JOBS = {
    "depreciation": ("POST", "/api/v1/cron/depreciation"),
    "session-cleanup": ("POST", "/api/v1/cron/session-cleanup"),
    "health": ("GET", "/api/v1/health/depreciation"),
}


class JobResult:
    """Outcome of one cron call."""

    def __init__(self, name: str, ok: bool, message: str,
                 status_code: Optional[int] = None, body: Optional[dict] = None,
                 unreachable: bool = False):
        self.name = name
        self.ok = ok
        self.message = message
        self.status_code = status_code
        self.body = body or {}
        self.unreachable = unreachable

    def to_dict(self) -> dict:
        return {
            "job": self.name,
            "ok": self.ok,
            "message": self.message,
            "status_code": self.status_code,
            "body": self.body,
        }

    def __str__(self) -> str:
        icon = "OK  " if self.ok else "FAIL"
        return f"[{icon}] {self.name}: {self.message}"


# ══════════════════════════════════════════════════════════════════════
# Calls
# ══════════════════════════════════════════════════════════════════════

def call_job(base_url: str, name: str, secret: Optional[str],
             timeout: int = 120) -> JobResult:
    method, path = JOBS[name]
    url = f"{base_url.rstrip('/')}{path}"
    headers = {"Authorization": f"Bearer {secret}"} if secret else {}
    try:
        resp = requests.request(method, url, headers=headers, timeout=timeout)
    except requests.exceptions.ConnectionError as e:
        return JobResult(name, False, f"Cannot connect to {url}", unreachable=True,
                         body={"error": str(e)})
    except requests.exceptions.Timeout:
        return JobResult(name, False, f"Timed out after {timeout}s", unreachable=True)

    try:
        body = resp.json()
    except ValueError:
        body = {"raw": resp.text[:500]}

    if resp.status_code == 401:
        return JobResult(name, False, "Unauthorized (check CRON_SECRET)",
                         resp.status_code, body)
    if resp.status_code >= 400:
        return JobResult(name, False, f"HTTP {resp.status_code}: {body.get('error', '')}",
                         resp.status_code, body)

    return JobResult(name, True, _summarize(name, body), resp.status_code, body)


def _summarize(name: str, body: dict) -> str:
    if name == "depreciation":
        results = body.get("results", [])
        failed = [r for r in results if r.get("status") == "error"]
        return f"{len(results)} schedule(s) processed, {len(failed)} failed"
    if name == "session-cleanup":
        return f"{body.get('deleted', 0)} session(s) removed"
    scheduler = body.get("scheduler", {})
    return (
        f"{body.get('status', 'unknown')}: "
        f"{scheduler.get('active_schedules', 0)} active schedule(s), "
        f"{scheduler.get('assets_ready', 0)} asset(s) ready"
    )


def run_jobs(base_url: str, jobs: list[str], secret: Optional[str],
             timeout: int = 120) -> list[JobResult]:
    results: list[JobResult] = []
    for name in jobs:
        result = call_job(base_url, name, secret, timeout=timeout)
        results.append(result)
        if result.unreachable:
            break
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Back-office cron client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", default=os.environ.get("BACKOFFICE_URL", "http://localhost:8000"),
                        help="Base URL of the API (default: $BACKOFFICE_URL or localhost)")
    parser.add_argument("--job", choices=sorted(JOBS), action="append",
                        help="Job to run; repeat for several (default: all)")
    parser.add_argument("--secret", default=os.environ.get("CRON_SECRET"),
                        help="Cron bearer secret (default: $CRON_SECRET)")
    parser.add_argument("--timeout", type=int, default=120,
                        help="HTTP timeout in seconds (default: 120)")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")
    args = parser.parse_args()

    jobs = args.job or list(JOBS)
    results = run_jobs(args.url, jobs, args.secret, timeout=args.timeout)

    if args.output_json:
        print(json.dumps({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "target": args.url,
            "jobs": [r.to_dict() for r in results],
            "all_ok": all(r.ok for r in results),
        }, indent=2))
    else:
        for result in results:
            print(result)

    if any(r.unreachable for r in results):
        sys.exit(2)
    sys.exit(0 if all(r.ok for r in results) else 1)


if __name__ == "__main__":
    main()
