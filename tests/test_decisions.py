"""
Tests for decision providers (framework_manager/decisions.py).
"""

import io
from pathlib import Path
from unittest.mock import patch

import pytest

from framework_manager.decisions import (
    CONFLICT_CHOICES,
    CONFLICT_KEEP,
    CONFLICT_MERGE,
    CONFLICT_OVERWRITE,
    UPDATE_CANCEL,
    UPDATE_PROCEED,
    UPDATE_SHOW_DIFF,
    UPDATE_WITH_BACKUP,
    ConsoleDecisionProvider,
    PolicyDecisionProvider,
    ScriptedDecisionProvider,
    decision_provider_from_policy,
)
from framework_manager.models import FrameworkDefinition


FRAMEWORK = FrameworkDefinition(
    id="tdd-bdd-strategy",
    name="TDD/BDD Testing Strategy",
    description="",
    category="testing",
    version="2.0.0",
    file_name="strategy-tdd-bdd.md",
)

UPDATE_CHOICES = (UPDATE_SHOW_DIFF, UPDATE_PROCEED, UPDATE_CANCEL)


def _console(*answers, interactive=True):
    responses = iter(answers)
    output = io.StringIO()
    provider = ConsoleDecisionProvider(
        input_func=lambda: next(responses),
        output=output,
        interactive=interactive,
    )
    return provider, output


class TestPolicyDecisionProvider:
    """Tests for fixed-policy decisions."""

    def test_conflict_action(self):
        """Test the configured conflict action is returned."""
        provider = PolicyDecisionProvider(conflict_action=CONFLICT_MERGE)
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == CONFLICT_MERGE

    def test_update_uncustomized(self):
        """Test plain update for pristine files."""
        provider = PolicyDecisionProvider()
        assert provider.confirm_update(FRAMEWORK, False, UPDATE_CHOICES) == UPDATE_PROCEED

    def test_update_customized_requires_backup(self):
        """Test customized files are updated with a backup."""
        provider = PolicyDecisionProvider()
        choice = provider.confirm_update(FRAMEWORK, True, (UPDATE_SHOW_DIFF, UPDATE_WITH_BACKUP, UPDATE_CANCEL))
        assert choice == UPDATE_WITH_BACKUP

    def test_backup_policy_on_pristine_file_answers_offered_choice(self):
        """Test the backup policy answers a plain update when no backup choice is offered."""
        provider = PolicyDecisionProvider(update_action=UPDATE_WITH_BACKUP)
        pristine_choices = (UPDATE_SHOW_DIFF, UPDATE_PROCEED, UPDATE_CANCEL)
        assert provider.confirm_update(FRAMEWORK, False, pristine_choices) == UPDATE_PROCEED

    def test_update_cancel_policy(self):
        """Test cancel policy declines every update."""
        provider = PolicyDecisionProvider(update_action=UPDATE_CANCEL)
        assert provider.confirm_update(FRAMEWORK, True, UPDATE_CHOICES) == UPDATE_CANCEL

    def test_invalid_actions(self):
        """Test unknown policies are rejected."""
        with pytest.raises(ValueError):
            PolicyDecisionProvider(conflict_action="replace")
        with pytest.raises(ValueError):
            PolicyDecisionProvider(update_action=UPDATE_SHOW_DIFF)


class TestScriptedDecisionProvider:
    """Tests for scripted decisions."""

    def test_replays_answers_and_records_prompts(self):
        """Test answers are consumed in order and prompts recorded."""
        provider = ScriptedDecisionProvider(conflict=[CONFLICT_KEEP], update=[UPDATE_SHOW_DIFF, UPDATE_PROCEED])

        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == CONFLICT_KEEP
        assert provider.confirm_update(FRAMEWORK, False, UPDATE_CHOICES) == UPDATE_SHOW_DIFF
        provider.show_diff(FRAMEWORK, Path("a"), Path("b"))
        assert provider.confirm_update(FRAMEWORK, False, UPDATE_CHOICES) == UPDATE_PROCEED

        assert provider.conflict_prompts == ["tdd-bdd-strategy"]
        assert provider.update_prompts == [
            ("tdd-bdd-strategy", False, UPDATE_CHOICES),
            ("tdd-bdd-strategy", False, UPDATE_CHOICES),
        ]
        assert provider.diffs_shown == ["tdd-bdd-strategy"]

    def test_exhausted_script_cancels(self):
        """Test running out of answers yields cancel."""
        provider = ScriptedDecisionProvider()
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == "cancel"
        assert provider.confirm_update(FRAMEWORK, False, UPDATE_CHOICES) == UPDATE_CANCEL


class TestConsoleDecisionProvider:
    """Tests for terminal prompts."""

    def test_numeric_choice(self):
        """Test choosing by number."""
        provider, output = _console("2")
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == CONFLICT_MERGE
        text = output.getvalue()
        assert "already exists" in text
        assert "3) Keep Existing" in text

    def test_label_choice(self):
        """Test choosing by label, case-insensitively."""
        provider, _ = _console("Keep Existing")
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == CONFLICT_KEEP

    def test_value_choice(self):
        """Test choosing by choice value."""
        provider, _ = _console("overwrite")
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == CONFLICT_OVERWRITE

    def test_unrecognized_answer_cancels(self):
        """Test unknown input is treated as cancel."""
        provider, _ = _console("9")
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == "cancel"

    def test_customized_update_warns(self):
        """Test customized update prompt warns about losing changes."""
        provider, output = _console("2")
        choices = (UPDATE_SHOW_DIFF, UPDATE_WITH_BACKUP, UPDATE_CANCEL)
        assert provider.confirm_update(FRAMEWORK, True, choices) == UPDATE_WITH_BACKUP
        assert "has been customized" in output.getvalue()

    def test_non_interactive_cancels_without_prompting(self):
        """Test no prompt is shown without a terminal."""
        provider, output = _console(interactive=False)
        assert provider.resolve_conflict(FRAMEWORK, Path("x")) == "cancel"
        assert provider.confirm_update(FRAMEWORK, False, UPDATE_CHOICES) == "cancel"
        assert output.getvalue() == ""

    @patch.dict("os.environ", {"CI": "true"})
    def test_ci_environment_is_not_interactive(self):
        """Test CI detection disables prompting."""
        provider = ConsoleDecisionProvider(output=io.StringIO())
        assert provider.is_interactive() is False

    def test_show_diff(self, tmp_path):
        """Test a unified diff is printed."""
        installed = tmp_path / "installed.md"
        source = tmp_path / "source.md"
        installed.write_text("line one\nmy note\n")
        source.write_text("line one\nline two\n")
        provider, output = _console()

        provider.show_diff(FRAMEWORK, installed, source)

        text = output.getvalue()
        assert "-my note" in text
        assert "+line two" in text
        assert "(v2.0.0)" in text


class TestDecisionProviderFromPolicy:
    """Tests for policy-based provider selection."""

    def test_prompt_selects_console(self):
        """Test prompt policy yields the console provider."""
        assert isinstance(decision_provider_from_policy("prompt", "update"), ConsoleDecisionProvider)
        assert isinstance(decision_provider_from_policy("overwrite", "prompt"), ConsoleDecisionProvider)

    def test_fixed_policy(self):
        """Test fixed policies yield a policy provider."""
        provider = decision_provider_from_policy("keep", "cancel")
        assert isinstance(provider, PolicyDecisionProvider)
        assert provider.conflict_action == CONFLICT_KEEP
        assert provider.update_action == UPDATE_CANCEL

    def test_conflict_choices_order(self):
        """Test conflict choices are offered in prompt order."""
        assert CONFLICT_CHOICES == ("overwrite", "merge", "keep", "cancel")
