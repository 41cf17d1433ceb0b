"""Interactive choice prompts used during member resolution."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import click


class Prompter(Protocol):  # pylint: disable=too-few-public-methods
    """Asks the user to pick one of `choices`."""

    def ask(self, question: str, choices: Sequence[str]) -> str: ...


class ClickPrompter:  # pylint: disable=too-few-public-methods
    """Terminal prompter backed by click."""

    def ask(self, question: str, choices: Sequence[str]) -> str:
        return click.prompt(
            question,
            type=click.Choice(list(choices), case_sensitive=False),
            show_choices=True,
            err=True,
        )
