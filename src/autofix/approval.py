"""Confirmation flow for destructive steps.

The executor asks a ``ConfirmationHandler`` before running a destructive step
that was not authorized by --deep or --approve. The base handler declines,
so anything without an explicit human (or webhook) answer stays proposed.
"""

from __future__ import annotations

import time
from typing import Any

import click
import httpx

from .types import Step


class ConfirmationHandler:
    """Answers yes/no questions about destructive steps."""

    def __init__(self, interactive: bool = False):
        """
        Initialize confirmation handler.

        Args:
            interactive: Whether a human can be prompted through this handler
        """
        self.interactive = interactive

    async def confirm(self, question: str, step: Step | None = None) -> bool:
        """
        Ask for confirmation.

        Args:
            question: Human-readable question
            step: Step the question is about, if any

        Returns:
            True if confirmed, False otherwise
        """
        # Non-interactive default: decline
        return False


class InteractiveConfirmer(ConfirmationHandler):
    """Prompts on the terminal with a ``[y/N]`` question."""

    def __init__(self) -> None:
        super().__init__(interactive=True)

    async def confirm(self, question: str, step: Step | None = None) -> bool:
        if step is not None:
            click.echo()
            click.echo(f"  {step.title}")
            if step.rationale:
                click.echo(f"  Why: {step.rationale}")
            for command in step.commands:
                click.echo(f"    $ {command}")
            if step.irreversible:
                reason = step.irreversible_reason or "no snapshot can restore this"
                click.echo(f"  IRREVERSIBLE: {reason}")
        return bool(click.confirm(question, default=False))


class AlwaysApproveConfirmer(ConfirmationHandler):
    """Confirmation handler that always approves (for testing/CI)."""

    async def confirm(self, question: str, step: Step | None = None) -> bool:
        return True


class AlwaysDeclineConfirmer(ConfirmationHandler):
    """Confirmation handler that always declines."""

    async def confirm(self, question: str, step: Step | None = None) -> bool:
        return False


class WebhookConfirmer(ConfirmationHandler):
    """
    Confirmation handler that asks an external webhook.

    For integration with chat-ops or review bots. Fails closed.
    """

    def __init__(
        self,
        webhook_url: str,
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 300,
        run_id: str = "",
    ):
        super().__init__(interactive=False)
        self.webhook_url = webhook_url
        self.headers = headers or {}
        self.timeout_seconds = timeout_seconds
        self.run_id = run_id

    async def confirm(self, question: str, step: Step | None = None) -> bool:
        payload: dict[str, Any] = {
            "timestamp": time.time(),
            "run_id": self.run_id,
            "question": question,
            "step": step.to_dict() if step is not None else None,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                res = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers=self.headers,
                )
        except Exception:
            # Fail-closed on network errors/timeouts.
            return False

        if res.status_code != 200:
            return False

        try:
            data = res.json()
        except Exception:
            return False

        if not isinstance(data, dict):
            return False
        approved = data.get("approved", False)
        if approved is True:
            return True
        if isinstance(approved, str):
            return approved.strip().lower() in {"true", "1", "yes", "y", "approve", "approved"}
        if isinstance(approved, int) and not isinstance(approved, bool):
            return approved == 1
        return False
