"""CLI client for the multitool API."""

from __future__ import annotations

import json
import logging
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from multitool.common import (
    AnsiColors,
    colored_print,
    truncate,
)
from multitool.config import settings

logger = logging.getLogger(__name__)

TOOL_ICONS = {"search_web": "🔍", "ai_pipe": "🤖", "execute_python": "⚡"}
HELP_TEXT = "Commands: /reset (clear conversation), /retry (after an error), exit | quit"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def render_event(event: Dict[str, Any]) -> None:
    """Print one agent loop event (assistant text, tool invocation, tool result)."""
    kind = event.get("type")
    if kind == "assistant_text":
        colored_print(f"🤖 Agent: {event['text']}", AnsiColors.YELLOW)
    elif kind == "tool_invoked":
        icon = TOOL_ICONS.get(event["name"], "🔧")
        try:
            args = json.loads(event.get("arguments") or "{}")
        except json.JSONDecodeError:
            args = {"arguments": event.get("arguments")}
        if isinstance(args, dict):
            params = ", ".join(f"{k}={truncate(v)}" for k, v in args.items())
        else:
            params = truncate(args)
        colored_print(f"{icon} {event['name']}({params})", AnsiColors.MAGENTA)
    elif kind == "tool_result":
        color = AnsiColors.RED if event.get("is_error") else AnsiColors.GREEN
        colored_print(f"   ↳ {event['result']}", color)


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
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(endpoint: str, data: Dict[str, Any], max_retries: int = 5) -> Dict[str, Any]:
    """Make a POST request to the API and return the response, retrying while it starts up."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        try:
            # No client-side deadline: the server bounds each model and tool call itself
            with httpx.Client(timeout=None) as client:
                response = client.post(api_url, json=data)
        except httpx.ConnectError as e:
            if attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                import time  # pylint: disable=import-outside-toplevel

                time.sleep(retry_delay)
                continue
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {str(e)}"}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {str(e)}"}

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            return {"error": f"API error ({response.status_code}): {detail}"}
        return cast(Dict[str, Any], response.json())

    return {"error": f"Failed to connect to API after {max_retries} attempts"}


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    session_response = call_api("/sessions", {})
    session_id = session_response.get("session_id")

    if not session_id:
        colored_print(
            f"⚠️ Failed to create a session: {session_response.get('error')}", AnsiColors.RED
        )
        return

    colored_print("\nmultitool shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    colored_print(HELP_TEXT, AnsiColors.GREY)
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break

        if user_msg == "/reset":
            response = call_api(f"/sessions/{session_id}/reset", {})
            if "error" not in response:
                colored_print("Conversation cleared.", AnsiColors.GREY)
        elif user_msg == "/retry":
            response = call_api(f"/sessions/{session_id}/retry", {})
        else:
            response = call_api("/agent", {"message": user_msg, "session_id": session_id})

        for event in response.get("events", []):
            render_event(event)
        if "error" in response:
            colored_print(f"⚠️ {response['error']}", AnsiColors.RED)


if __name__ == "__main__":
    run_cli()
