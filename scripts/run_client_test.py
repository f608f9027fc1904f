#!/usr/bin/env python3
"""API client integration test for the clinic session server.

Acts as a pure HTTP client against a live server: for each run it starts an
activity or assessment session for one patient, scores a random subset of
the tasks with random scores and help codes, finalizes the session, then
reads back the summary and checks that the server's counts match what was
submitted.  A 409 on start (an in-progress session left over from an earlier
crash) is reported and skipped.

The caller identity is sent as the base64 ``X-User-Data`` header the SSO
gateway would inject.

Usage::

    # Install deps (first time only)
    uv pip install httpx rich

    # One activity run
    uv run python scripts/run_client_test.py \\
        --tenant-id clinic-a --patient-id <uuid> --activity-id <uuid> -n 1 -v

    # Alternate between an activity and an assessment, 10 runs
    uv run python scripts/run_client_test.py --tenant-id clinic-a \\
        --patient-id <uuid> --activity-id <uuid> --assessment-id <uuid> -n 10

    # Reproducible run through a proxy secret
    uv run python scripts/run_client_test.py ... --seed 42 --proxy-secret s3cret
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from rich.console import Console
from rich.table import Table

# Prompting levels accepted on activity responses
HELP_TYPES = ["-", "AFT", "AFP", "AI", "AG", "AVE", "AVG", "+"]


# ---------------------------------------------------------------------------
# SessionResult: outcome of one run
# ---------------------------------------------------------------------------

@dataclass
class SessionResult:
    run_index: int
    kind: str
    status: str = "pending"  # success | conflict | mismatch | failed
    session_id: str | None = None
    task_count: int = 0
    scored: int = 0
    mean_score: float | None = None
    error: str | None = None
    problems: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# APIClient: thin httpx wrapper with X-User-Data header
# ---------------------------------------------------------------------------

class APIClient:
    """Async HTTP client for the clinic session API."""

    def __init__(
        self,
        base_url: str,
        user: dict[str, Any],
        *,
        proxy_secret: str | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        raw = json.dumps(user).encode("utf-8")
        self._headers = {"X-User-Data": base64.b64encode(raw).decode("ascii")}
        if proxy_secret:
            self._headers["X-Proxy-Secret"] = proxy_secret
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> APIClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def health_check(self) -> bool:
        """Check server health. Returns True if the server and DB are up."""
        try:
            resp = await self._client.get("/health")  # type: ignore[union-attr]
            return resp.status_code == 200 and resp.json().get("status") == "ok"
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    async def start(self, kind: str, patient_id: str, target_id: str) -> dict:
        target_key = "activity_id" if kind == "activity" else "assessment_id"
        return await self._post(
            f"/api/v1/{kind}-sessions",
            json={"patient_id": patient_id, target_key: target_id},
        )

    async def respond(self, kind: str, session_id: str, body: dict) -> dict:
        return await self._post(f"/api/v1/{kind}-sessions/{session_id}/responses", json=body)

    async def finalize(self, kind: str, session_id: str, notes: str | None) -> dict:
        return await self._post(
            f"/api/v1/{kind}-sessions/{session_id}/finalize",
            json={"general_notes": notes},
        )

    async def summary(self, session_id: str) -> dict:
        return await self._get(f"/api/v1/sessions/{session_id}/summary")

    async def _get(self, path: str) -> dict:
        """GET, retry once on timeout."""
        try:
            resp = await self._client.get(path)  # type: ignore[union-attr]
        except httpx.TimeoutException:
            resp = await self._client.get(path)  # type: ignore[union-attr]
        resp.raise_for_status()
        return resp.json()

    async def _post(self, path: str, json: Any) -> dict:
        """POST, retry once on timeout."""
        try:
            resp = await self._client.post(path, json=json)  # type: ignore[union-attr]
        except httpx.TimeoutException:
            resp = await self._client.post(path, json=json)  # type: ignore[union-attr]
        resp.raise_for_status()
        return resp.json()


# ---------------------------------------------------------------------------
# SessionRunner: drives one session from start to summary
# ---------------------------------------------------------------------------

class SessionRunner:
    def __init__(self, client: APIClient, rng: random.Random, console: Console, verbose: int):
        self._client = client
        self._rng = rng
        self._console = console
        self._verbose = verbose

    async def run(self, run_index: int, kind: str, patient_id: str, target_id: str) -> SessionResult:
        result = SessionResult(run_index=run_index, kind=kind)
        try:
            started = await self._client.start(kind, patient_id, target_id)
            session = started["session"]
            result.session_id = session["id"]
            result.task_count = started["task_count"]
            self._log(f"[cyan]{kind}[/] {session['id']}: {started['message']}")

            tasks = session["tasks"]
            chosen = self._rng.sample(tasks, self._rng.randint(0, len(tasks)))
            scores: dict[str, int] = {}
            for task in chosen:
                body: dict[str, Any] = {
                    "task_id": task["id"],
                    "score": self._rng.randint(0, 3),
                }
                if kind == "activity":
                    body["help_types"] = self._rng.sample(HELP_TYPES, self._rng.randint(0, 2))
                await self._client.respond(kind, session["id"], body)
                scores[task["id"]] = body["score"]
                if self._verbose > 1:
                    self._console.print(f"    [dim]{task['position']}. {task['text']}[/] → {body}")

            # Re-score one task to exercise the overwrite path
            if chosen:
                task = self._rng.choice(chosen)
                scores[task["id"]] = self._rng.randint(0, 3)
                await self._client.respond(
                    kind, session["id"], {"task_id": task["id"], "score": scores[task["id"]]},
                )

            await self._client.finalize(kind, session["id"], f"run {run_index}")
            summary = await self._client.summary(session["id"])
            result.scored = summary["scored_count"]
            result.mean_score = summary["mean_score"]

            expected_mean = (
                round(sum(scores.values()) / len(scores), 2) if scores else None
            )
            if summary["status"] != "finalized":
                result.problems.append(f"status={summary['status']}")
            if summary["scored_count"] != len(scores):
                result.problems.append(
                    f"scored_count={summary['scored_count']} expected {len(scores)}"
                )
            if summary["mean_score"] != expected_mean:
                result.problems.append(
                    f"mean_score={summary['mean_score']} expected {expected_mean}"
                )
            result.status = "mismatch" if result.problems else "success"
            return result

        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 409:
                result.status = "conflict"
            else:
                result.status = "failed"
            result.error = f"HTTP {exc.response.status_code}: {exc.response.text}"
            self._log(f"[red]{result.error}[/]")
            return result

        except httpx.TimeoutException:
            result.status = "failed"
            result.error = "Request timed out (after retry)"
            self._log(f"[red]{result.error}[/]")
            return result

    def _log(self, message: str) -> None:
        if self._verbose:
            self._console.print(f"  {message}")


# ---------------------------------------------------------------------------
# Summary table
# ---------------------------------------------------------------------------

def print_summary(console: Console, results: list[SessionResult]) -> None:
    console.print("\n")
    console.rule("[bold]Run Summary")

    counts: dict[str, int] = {}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    console.print(f"  Total:     {len(results)}")
    console.print(f"  [green]Success:[/]   {counts.get('success', 0)}")
    console.print(f"  [yellow]Conflict:[/]  {counts.get('conflict', 0)}")
    console.print(f"  [red]Mismatch:[/]  {counts.get('mismatch', 0)}")
    console.print(f"  [red]Failed:[/]    {counts.get('failed', 0)}")
    console.print()

    table = Table(title="Results by Run", show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Kind", width=11)
    table.add_column("Session", min_width=36)
    table.add_column("Status", width=10)
    table.add_column("Scored", width=8)
    table.add_column("Mean", width=6)
    table.add_column("Notes", min_width=20)

    for r in results:
        status_str = {
            "success": "[green]OK[/]",
            "conflict": "[yellow]409[/]",
            "mismatch": "[red]DIFF[/]",
            "failed": "[red]FAIL[/]",
        }.get(r.status, r.status)
        table.add_row(
            str(r.run_index),
            r.kind,
            r.session_id or "-",
            status_str,
            f"{r.scored}/{r.task_count}",
            "-" if r.mean_score is None else str(r.mean_score),
            "; ".join(r.problems) or (r.error or ""),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# CLI + async main
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="API client integration test for the clinic session server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--base-url", default="http://localhost:8080",
                        help="Server base URL (default: http://localhost:8080)")
    parser.add_argument("--tenant-id", required=True, help="Clinic (tenant) id")
    parser.add_argument("--patient-id", required=True, help="Patient to run sessions for")
    parser.add_argument("--activity-id", default=None, help="Activity to administer")
    parser.add_argument("--assessment-id", default=None, help="Assessment to administer")
    parser.add_argument("--user-id", default="client-test",
                        help="Login user id sent in X-User-Data (default: client-test)")
    parser.add_argument("--role", default="ADMIN",
                        help="Role sent in X-User-Data (default: ADMIN)")
    parser.add_argument("--proxy-secret", default=None,
                        help="Value for X-Proxy-Secret when the server requires it")
    parser.add_argument("-n", "--runs", type=int, default=3,
                        help="Number of sessions to run (default: 3)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity (-v per session, -vv per response)")
    parser.add_argument("--seed", type=int, default=None,
                        help="RNG seed for reproducibility (default: current timestamp)")
    parser.add_argument("--timeout", type=float, default=30.0,
                        help="HTTP request timeout in seconds (default: 30)")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    console = Console()

    targets: list[tuple[str, str]] = []
    if args.activity_id:
        targets.append(("activity", args.activity_id))
    if args.assessment_id:
        targets.append(("assessment", args.assessment_id))
    if not targets:
        console.print("[red]Pass --activity-id and/or --assessment-id.[/]")
        sys.exit(1)

    seed = args.seed if args.seed is not None else int(time.time())
    rng = random.Random(seed)
    console.print(f"[dim]RNG seed: {seed}[/]")

    user = {
        "id": args.user_id,
        "role": args.role,
        "tenant": {"id": args.tenant_id},
    }
    results: list[SessionResult] = []

    async with APIClient(
        args.base_url, user, proxy_secret=args.proxy_secret, timeout=args.timeout,
    ) as client:
        if not await client.health_check():
            console.print(
                f"[red]Server at {args.base_url} is not reachable. "
                f"Is the server running?[/]"
            )
            sys.exit(1)

        runner = SessionRunner(client, rng, console, args.verbose)
        for i in range(1, args.runs + 1):
            kind, target_id = targets[(i - 1) % len(targets)]
            results.append(await runner.run(i, kind, args.patient_id, target_id))

    print_summary(console, results)
    if any(r.status in ("failed", "mismatch") for r in results):
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
