"""Operator decisions.

Every question the tooling asks goes through a Prompter so that scripted runs
and tests can answer without a terminal.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import click

from .errors import PreconditionMissing


class Prompter(ABC):
    """Source of operator answers."""

    @abstractmethod
    def confirm(self, question: str, default: bool = False) -> bool:
        """Yes/no question."""

    @abstractmethod
    def secret(self, question: str, required: bool = False) -> str:
        """Masked input. Returns "" when skipped."""

    @abstractmethod
    def text(self, question: str, default: Optional[str] = None) -> str:
        """Free text input."""

    @abstractmethod
    def choose(self, question: str, choices: Sequence[str]) -> int:
        """Pick one of ``choices``; returns its zero-based index."""


class InteractivePrompter(Prompter):
    """Terminal prompts via click. Blocks until the operator answers."""

    def confirm(self, question: str, default: bool = False) -> bool:
        return click.confirm(question, default=default)

    def secret(self, question: str, required: bool = False) -> str:
        while True:
            value = click.prompt(question, default="", hide_input=True, show_default=False)
            if value or not required:
                return value
            click.secho("A value is required.", fg="red")

    def text(self, question: str, default: Optional[str] = None) -> str:
        return click.prompt(question, default=default or "", show_default=bool(default))

    def choose(self, question: str, choices: Sequence[str]) -> int:
        for number, choice in enumerate(choices, start=1):
            click.echo(f"{number}) {choice}")
        click.echo("")
        selected = click.prompt(
            question,
            type=click.IntRange(1, len(choices)),
        )
        return selected - 1


class ScriptedPrompter(Prompter):
    """Answers from fixed values, for --yes runs and tests.

    Args:
        confirm_answer: Answer returned for every yes/no question
        answers: Optional per-question answers, matched by substring of the question
        choice: Index returned by choose()
    """

    def __init__(self, confirm_answer: bool = True, answers: Optional[Dict[str, str]] = None,
                 choice: int = 0):
        self.confirm_answer = confirm_answer
        self.answers = answers or {}
        self.choice = choice
        self.asked: List[str] = []

    def _lookup(self, question: str) -> Optional[str]:
        for fragment, answer in self.answers.items():
            if fragment in question:
                return answer
        return None

    def confirm(self, question: str, default: bool = False) -> bool:
        self.asked.append(question)
        answer = self._lookup(question)
        if answer is not None:
            return answer.strip().lower() in ("y", "yes", "true", "1")
        return self.confirm_answer

    def secret(self, question: str, required: bool = False) -> str:
        self.asked.append(question)
        answer = self._lookup(question) or ""
        if required and not answer:
            raise PreconditionMissing(f"No value supplied for required input: {question}")
        return answer

    def text(self, question: str, default: Optional[str] = None) -> str:
        self.asked.append(question)
        answer = self._lookup(question)
        return answer if answer is not None else (default or "")

    def choose(self, question: str, choices: Sequence[str]) -> int:
        self.asked.append(question)
        return self.choice
