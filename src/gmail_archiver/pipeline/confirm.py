"""Interactive yes/no checkpoint before a transfer issues any mutating call."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

AFFIRMATIVE = frozenset({"y", "yes"})


def build_prompt(*, dry_run: bool, source_email: str, archive_email: str) -> str:
    """Operator-facing question describing what the run is about to do."""
    if dry_run:
        return (
            f"Dry run: {source_email} -> {archive_email}. "
            "Do you want to proceed with the dry run? (y/n): "
        )
    return (
        f"Transfer all messages from {source_email} into {archive_email}. "
        "Do you want to proceed with the transfer? (y/n): "
    )


class ConfirmationGate:
    """Blocks until the operator answers; only 'y' or 'yes' proceeds."""

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        *,
        auto_confirm: bool = False,
    ) -> None:
        self._prompt = prompt
        self._auto_confirm = auto_confirm

    def confirm(self, message: str) -> bool:
        if self._auto_confirm:
            logger.info("Auto-confirmed: %s", message.strip())
            return True
        try:
            answer = self._prompt(message)
        except EOFError:
            return False
        return answer.strip().lower() in AFFIRMATIVE
