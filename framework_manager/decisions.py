"""
Decision providers for conflict resolution and update confirmation.

The lifecycle manager never talks to a user directly. Whenever it needs a
choice it asks a decision provider, which may prompt on a terminal, apply a
fixed policy, or replay a script.
"""

from __future__ import annotations

import difflib
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Iterable, TextIO

from .common import is_ci_environment
from .models import FrameworkDefinition

# Conflict choices
CONFLICT_OVERWRITE = "overwrite"
CONFLICT_MERGE = "merge"
CONFLICT_KEEP = "keep"
CONFLICT_CANCEL = "cancel"

CONFLICT_CHOICES = (CONFLICT_OVERWRITE, CONFLICT_MERGE, CONFLICT_KEEP, CONFLICT_CANCEL)

# Update confirmation choices
UPDATE_SHOW_DIFF = "show_diff"
UPDATE_PROCEED = "update"
UPDATE_WITH_BACKUP = "update_with_backup"
UPDATE_CANCEL = "cancel"

UPDATE_CHOICES = (UPDATE_SHOW_DIFF, UPDATE_PROCEED, UPDATE_WITH_BACKUP, UPDATE_CANCEL)

CHOICE_LABELS = {
    CONFLICT_OVERWRITE: "Overwrite",
    CONFLICT_MERGE: "Merge",
    CONFLICT_KEEP: "Keep Existing",
    UPDATE_SHOW_DIFF: "Show Diff",
    UPDATE_PROCEED: "Update",
    UPDATE_WITH_BACKUP: "Update with Backup",
    "cancel": "Cancel",
}


class DecisionProvider:
    """
    Interface for the choices the lifecycle manager delegates.

    Providers hold no shared mutable state across operations; create one
    per logical operation if an implementation needs per-call state.
    """

    def resolve_conflict(self, framework: FrameworkDefinition, target_path: Path) -> str:
        """Choose one of CONFLICT_CHOICES for an existing target file."""
        raise NotImplementedError

    def confirm_update(
        self,
        framework: FrameworkDefinition,
        customized: bool,
        choices: tuple[str, ...],
    ) -> str:
        """Choose one of the offered update choices."""
        raise NotImplementedError

    def show_diff(self, framework: FrameworkDefinition, installed_path: Path, source_path: Path) -> None:
        """Present the difference between the installed file and the new version."""


class PolicyDecisionProvider(DecisionProvider):
    """Answers every question with a fixed, preconfigured choice."""

    def __init__(self, conflict_action: str = CONFLICT_OVERWRITE, update_action: str = UPDATE_PROCEED):
        if conflict_action not in CONFLICT_CHOICES:
            raise ValueError(f"Invalid conflict action: {conflict_action}")
        if update_action not in (UPDATE_PROCEED, UPDATE_WITH_BACKUP, UPDATE_CANCEL):
            raise ValueError(f"Invalid update action: {update_action}")
        self.conflict_action = conflict_action
        self.update_action = update_action

    def resolve_conflict(self, framework: FrameworkDefinition, target_path: Path) -> str:
        return self.conflict_action

    def confirm_update(
        self,
        framework: FrameworkDefinition,
        customized: bool,
        choices: tuple[str, ...],
    ) -> str:
        if self.update_action == UPDATE_CANCEL:
            return UPDATE_CANCEL
        # Customized files are only ever updated with a backup
        return UPDATE_WITH_BACKUP if customized else UPDATE_PROCEED


class ScriptedDecisionProvider(DecisionProvider):
    """
    Replays queued answers and records every question asked.

    Running out of answers yields "cancel".
    """

    def __init__(self, conflict: Iterable[str] = (), update: Iterable[str] = ()):
        self._conflict = deque(conflict)
        self._update = deque(update)
        self.conflict_prompts: list[str] = []
        self.update_prompts: list[tuple[str, bool, tuple[str, ...]]] = []
        self.diffs_shown: list[str] = []

    def resolve_conflict(self, framework: FrameworkDefinition, target_path: Path) -> str:
        self.conflict_prompts.append(framework.id)
        return self._conflict.popleft() if self._conflict else CONFLICT_CANCEL

    def confirm_update(
        self,
        framework: FrameworkDefinition,
        customized: bool,
        choices: tuple[str, ...],
    ) -> str:
        self.update_prompts.append((framework.id, customized, choices))
        return self._update.popleft() if self._update else UPDATE_CANCEL

    def show_diff(self, framework: FrameworkDefinition, installed_path: Path, source_path: Path) -> None:
        self.diffs_shown.append(framework.id)


class ConsoleDecisionProvider(DecisionProvider):
    """
    Prompts on the terminal.

    Refuses to prompt when stdin is not a TTY or a CI environment is
    detected, answering "cancel" instead.
    """

    def __init__(
        self,
        input_func: Callable[[], str] = input,
        output: TextIO | None = None,
        interactive: bool | None = None,
    ):
        self._input = input_func
        self._output = output
        self._interactive = interactive

    @property
    def output(self) -> TextIO:
        return self._output or sys.stdout

    def is_interactive(self) -> bool:
        if self._interactive is not None:
            return self._interactive
        return sys.stdin.isatty() and not is_ci_environment()

    def resolve_conflict(self, framework: FrameworkDefinition, target_path: Path) -> str:
        return self._ask(
            f'Framework file "{framework.file_name}" already exists. What would you like to do?',
            CONFLICT_CHOICES,
        )

    def confirm_update(
        self,
        framework: FrameworkDefinition,
        customized: bool,
        choices: tuple[str, ...],
    ) -> str:
        if customized:
            question = (
                f'⚠️  The framework "{framework.name}" has been customized. '
                "Updating will overwrite your changes."
            )
        else:
            question = f'Update framework "{framework.name}" to version {framework.version}?'
        return self._ask(question, choices)

    def show_diff(self, framework: FrameworkDefinition, installed_path: Path, source_path: Path) -> None:
        current = _read_lines(installed_path)
        new = _read_lines(source_path)
        diff = difflib.unified_diff(
            current,
            new,
            fromfile=f"{framework.file_name} (current)",
            tofile=f"{framework.file_name} (v{framework.version})",
        )
        self.output.writelines(diff)
        self.output.write("\n")

    def _ask(self, question: str, choices: tuple[str, ...]) -> str:
        if not self.is_interactive():
            return "cancel"

        print(question, file=self.output)
        for index, choice in enumerate(choices, start=1):
            print(f"  {index}) {CHOICE_LABELS.get(choice, choice)}", file=self.output)
        print(f"Choose [1-{len(choices)}]: ", end="", file=self.output)
        self.output.flush()

        response = self._input().strip().lower()
        if response.isdigit() and 1 <= int(response) <= len(choices):
            return choices[int(response) - 1]
        for choice in choices:
            if response in (choice, CHOICE_LABELS.get(choice, "").lower()):
                return choice
        return "cancel"


def _read_lines(path: Path) -> list[str]:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace").splitlines(keepends=True)
    except OSError:
        return []


def decision_provider_from_policy(conflict_policy: str, update_policy: str) -> DecisionProvider:
    """
    Build the provider matching configured policies.

    "prompt" for either policy selects the console provider; otherwise the
    fixed choices are applied automatically.
    """
    if conflict_policy == "prompt" or update_policy == "prompt":
        return ConsoleDecisionProvider()
    return PolicyDecisionProvider(conflict_action=conflict_policy, update_action=update_policy)
