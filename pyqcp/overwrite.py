"""Overwrite decisions for files whose local and remote content differ."""

import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class OverwriteAction(str, Enum):
    """Choices offered when a file would be overwritten."""

    ASK = "ask"
    """Prompt for every file (initial state of a batch)"""

    BACKUP = "backup"
    """Back up the content that is replaced, then overwrite"""

    OVERWRITE = "overwrite"
    """Overwrite this file"""

    SKIP = "skip"
    """Keep this file as it is"""

    BACKUP_ALL = "backup_all"
    """BACKUP for this and every following file"""

    OVERWRITE_ALL = "overwrite_all"
    """OVERWRITE for this and every following file"""

    SKIP_ALL = "skip_all"
    """SKIP for this and every following file"""

    CANCEL = "cancel"
    """Stop the batch; changes already applied are kept"""

    @property
    def applies_to_all(self) -> bool:
        return self in _ALL_TO_SINGLE

    @property
    def single(self) -> "OverwriteAction":
        """The per-file action this choice resolves to."""
        return _ALL_TO_SINGLE.get(self, self)


_ALL_TO_SINGLE = {
    OverwriteAction.BACKUP_ALL: OverwriteAction.BACKUP,
    OverwriteAction.OVERWRITE_ALL: OverwriteAction.OVERWRITE,
    OverwriteAction.SKIP_ALL: OverwriteAction.SKIP,
}

_POLICY_TO_STATE = {
    "ask": OverwriteAction.ASK,
    "backup": OverwriteAction.BACKUP_ALL,
    "overwrite": OverwriteAction.OVERWRITE_ALL,
    "skip": OverwriteAction.SKIP_ALL,
}

OverwritePrompt = Callable[[str], OverwriteAction]
"""Called with the item label, returns the user's choice."""


class OverwriteResolver:
    """Per-batch overwrite state machine.

    The batch starts in ``ASK`` unless a policy was given up front. In ``ASK``
    every conflicting file is sent to ``prompt``; choosing one of the ``_ALL``
    actions moves the batch into that state so later files are decided
    without prompting. ``CANCEL`` is terminal.

    Without a prompt, ``ASK`` resolves to ``SKIP`` so nothing is overwritten
    silently.
    """

    def __init__(
        self,
        policy: str = "ask",
        prompt: Optional[OverwritePrompt] = None,
    ):
        """Initialize the resolver.

        Args:
            policy: Initial policy ('ask', 'backup', 'overwrite', 'skip')
            prompt: Callable asked for a decision while in the ASK state
        """
        if isinstance(policy, OverwriteAction) and (
            policy.applies_to_all or policy == OverwriteAction.CANCEL
        ):
            self.state = policy
        else:
            key = policy.value if isinstance(policy, OverwriteAction) else policy
            try:
                self.state = _POLICY_TO_STATE[key]
            except KeyError:
                raise ValueError(f"Unknown overwrite policy: {policy}") from None
        self.prompt = prompt
        self.decisions: dict[str, OverwriteAction] = {}

    @property
    def cancelled(self) -> bool:
        return self.state == OverwriteAction.CANCEL

    def resolve(self, item: str) -> OverwriteAction:
        """Decide what to do with ``item``.

        Args:
            item: Label of the file being decided (shown in the prompt)

        Returns:
            BACKUP, OVERWRITE, SKIP or CANCEL
        """
        if self.state == OverwriteAction.ASK:
            choice = self.prompt(item) if self.prompt else OverwriteAction.SKIP
            if choice == OverwriteAction.ASK:
                choice = OverwriteAction.SKIP
            if choice.applies_to_all or choice == OverwriteAction.CANCEL:
                logger.debug(f"Overwrite policy changed to {choice.value} at {item}")
                self.state = choice
        else:
            choice = self.state

        action = choice.single
        self.decisions[item] = action
        return action
