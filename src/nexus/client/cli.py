"""CLI client for the Nexus API: submit a goal, then follow the run until it settles."""

from __future__ import annotations

import logging
import signal
import time
from typing import (
    Any,
    Dict,
    List,
    Set,
    Tuple,
    cast,
)

import httpx

from nexus.common import (
    AnsiColors,
    colored_print,
    status_color,
)
from nexus.config import settings

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0

ROLE_COLORS = {
    "user": AnsiColors.BLUE,
    "model": AnsiColors.YELLOW,
    "system": AnsiColors.RED,
}


class ApiError(RuntimeError):
    """The API could not be reached or rejected the request."""


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    method: str, endpoint: str, data: Dict[str, Any] | None = None, max_retries: int = 5
) -> Any:
    """Send a request to the API and return the decoded JSON, retrying while it starts up."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=settings.CALL_DEADLINE) as client:
                response = client.request(method, api_url, json=data)
        except httpx.ConnectError as exc:
            if attempt == max_retries - 1:
                raise ApiError(f"Failed to connect to API after {max_retries} attempts") from exc
            retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
            logger.info(
                "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                retry_delay,
                attempt + 1,
                max_retries,
            )
            time.sleep(retry_delay)
            continue
        except httpx.HTTPError as exc:
            raise ApiError(f"Error connecting to API: {exc}") from exc

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(f"API error ({response.status_code}): {detail}")
        return response.json()

    raise ApiError(f"Failed to connect to API after {max_retries} attempts")


def _print_message(message: Dict[str, Any]) -> None:
    speaker = message.get("agent_id") or message["role"]
    color = ROLE_COLORS.get(message["role"], AnsiColors.YELLOW)
    if message.get("thinking"):
        colored_print(f"[{speaker} thinking] {message['thinking']}", AnsiColors.GREY)
    for call in message.get("tool_calls") or []:
        outcome = call.get("result") or call["status"]
        colored_print(f"[{call['tool_name']}] {outcome}", AnsiColors.GREEN)
    colored_print(f"[{speaker}] {message['content']}", color)


def _print_steps(steps: List[Dict[str, Any]], seen: Dict[str, str]) -> None:
    for step in steps:
        if seen.get(step["id"]) == step["status"]:
            continue
        seen[step["id"]] = step["status"]
        colored_print(
            f"  step {step['id']} ({step['agentId']}): {step['status']}",
            status_color(step["status"]),
        )


def follow_run(session_id: str, printed: Set[str]) -> Dict[str, Any]:
    """
    Print new messages and step transitions until the current run stops loading.

    *printed* holds the ids of messages already shown and is updated in place.
    """
    step_status: Dict[str, str] = {}
    while True:
        run = cast(Dict[str, Any], call_api("GET", "/runs/current"))["run"]
        for message in call_api("GET", f"/sessions/{session_id}/messages"):
            if message["id"] not in printed and message["role"] != "user":
                printed.add(message["id"])
                _print_message(message)
        _print_steps(run["steps"], step_status)
        if not run["is_loading"]:
            return run
        time.sleep(POLL_INTERVAL)


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    try:
        session_id = call_api("POST", "/sessions")["id"]
    except ApiError as exc:
        colored_print(f"Failed to create a session: {exc}", AnsiColors.RED)
        return

    printed: Set[str] = set()
    colored_print("\nNexus shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    while True:
        colored_print("\nGoal: ", AnsiColors.BLUE, end="")
        goal, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if goal.lower() in {"exit", "quit"}:
            break
        if not goal:
            continue

        try:
            call_api("POST", "/runs", {"goal": goal, "session_id": session_id})
            run = follow_run(session_id, printed)
        except ApiError as exc:
            colored_print(str(exc), AnsiColors.RED)
            continue

        if run.get("error"):
            colored_print(f"Run failed: {run['error']}", AnsiColors.RED)
        metrics = run["metrics"]
        colored_print(
            f"({metrics['total_requests']} requests, {metrics['total_tokens']} tokens)",
            AnsiColors.GREY,
        )


if __name__ == "__main__":
    run_cli()
