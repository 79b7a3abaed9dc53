"""User-facing notices and prompts.

The controller never talks to the browser directly. It reports through a
Notifier and asks questions through a Prompter; the web layer supplies
implementations that carry the messages back in the HTTP response.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def notify(self, message: str) -> None:
        """Show a blocking notice to the user."""


class Prompter(ABC):
    @abstractmethod
    def prompt(self, message: str, default: str = "") -> str | None:
        """Ask the user for a line of text. None means the user cancelled."""


class NoticeBuffer(Notifier):
    """Collects notices until the web layer drains them into a response."""

    def __init__(self) -> None:
        self._pending: list[str] = []

    def notify(self, message: str) -> None:
        self._pending.append(message)

    def drain(self) -> list[str]:
        notices, self._pending = self._pending, []
        return notices


class PromptRequired(Exception):
    """The answer has to come from the browser before the action can go on."""

    def __init__(self, message: str, default: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.default = default


class RequestPrompter(Prompter):
    """Answers a prompt from a value the browser already sent.

    When the request carried no answer at all, raises PromptRequired so the
    page can show the prompt and repeat the request.
    """

    _UNSET = object()

    def __init__(self, answer: object = _UNSET) -> None:
        self._answer = answer

    def prompt(self, message: str, default: str = "") -> str | None:
        if self._answer is self._UNSET:
            raise PromptRequired(message, default)
        if self._answer is None:
            return None
        return str(self._answer)
