"""Tests for the overwrite decision state machine."""

from unittest.mock import Mock

import pytest

from pyqcp.overwrite import OverwriteAction, OverwriteResolver


class TestOverwriteResolver:
    """Test OverwriteResolver state transitions."""

    def test_skip_all_stops_prompting(self):
        """Test that SKIP_ALL at file 2 of 5 skips files 3-5 silently."""
        prompt = Mock(side_effect=[OverwriteAction.OVERWRITE, OverwriteAction.SKIP_ALL])
        resolver = OverwriteResolver(prompt=prompt)

        actions = [resolver.resolve(f"src/f{i}.ts") for i in range(1, 6)]

        assert actions == [
            OverwriteAction.OVERWRITE,
            OverwriteAction.SKIP,
            OverwriteAction.SKIP,
            OverwriteAction.SKIP,
            OverwriteAction.SKIP,
        ]
        assert prompt.call_count == 2
        assert resolver.state == OverwriteAction.SKIP_ALL

    def test_single_choices_keep_asking(self):
        """Test that single-file choices leave the batch in ASK."""
        prompt = Mock(side_effect=[OverwriteAction.BACKUP, OverwriteAction.SKIP])
        resolver = OverwriteResolver(prompt=prompt)

        assert resolver.resolve("a") == OverwriteAction.BACKUP
        assert resolver.resolve("b") == OverwriteAction.SKIP
        assert resolver.state == OverwriteAction.ASK
        assert resolver.decisions == {
            "a": OverwriteAction.BACKUP,
            "b": OverwriteAction.SKIP,
        }

    def test_backup_all(self):
        """Test that BACKUP_ALL resolves later files to BACKUP."""
        prompt = Mock(return_value=OverwriteAction.BACKUP_ALL)
        resolver = OverwriteResolver(prompt=prompt)

        assert resolver.resolve("a") == OverwriteAction.BACKUP
        assert resolver.resolve("b") == OverwriteAction.BACKUP
        prompt.assert_called_once_with("a")

    def test_cancel_is_terminal(self):
        """Test that CANCEL is returned for every later file."""
        prompt = Mock(return_value=OverwriteAction.CANCEL)
        resolver = OverwriteResolver(prompt=prompt)

        assert resolver.resolve("a") == OverwriteAction.CANCEL
        assert resolver.resolve("b") == OverwriteAction.CANCEL
        assert resolver.cancelled
        assert prompt.call_count == 1

    def test_no_prompt_skips(self):
        """Test that nothing is overwritten without a way to ask."""
        resolver = OverwriteResolver()
        assert resolver.resolve("a") == OverwriteAction.SKIP
        assert resolver.state == OverwriteAction.ASK

    @pytest.mark.parametrize(
        "policy,expected",
        [
            ("backup", OverwriteAction.BACKUP),
            ("overwrite", OverwriteAction.OVERWRITE),
            ("skip", OverwriteAction.SKIP),
        ],
    )
    def test_policy_up_front(self, policy, expected):
        """Test that a policy decides without prompting."""
        prompt = Mock()
        resolver = OverwriteResolver(policy=policy, prompt=prompt)
        assert resolver.resolve("a") == expected
        prompt.assert_not_called()

    def test_unknown_policy(self):
        """Test that an unknown policy is rejected."""
        with pytest.raises(ValueError, match="Unknown overwrite policy"):
            OverwriteResolver(policy="merge")

    def test_action_helpers(self):
        """Test the applies_to_all and single properties."""
        assert OverwriteAction.SKIP_ALL.applies_to_all
        assert not OverwriteAction.SKIP.applies_to_all
        assert OverwriteAction.OVERWRITE_ALL.single == OverwriteAction.OVERWRITE
        assert OverwriteAction.CANCEL.single == OverwriteAction.CANCEL
