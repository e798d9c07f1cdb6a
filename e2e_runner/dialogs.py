"""
Dialog subscriptions.

Browser dialogs (alert, confirm, prompt) block the page until handled, and
an unhandled dialog is dismissed automatically. A handler registered after
the dialog-raising click is therefore a silent bug.

This module makes the ordering explicit: :func:`expect_dialog` registers the
response first and returns a :class:`DialogSubscription`, and :func:`trigger`
is the only way to run a dialog-raising action, so it cannot be called
without a subscription in hand.

Example:
    subscription = expect_dialog(page, DialogResponse.accept("John Doe"))
    record = trigger(subscription, lambda: page.click("#promtButton"))
    assert record.type == "prompt"
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from playwright.sync_api import Dialog, Page

logger = logging.getLogger(__name__)


class DialogSubscriptionError(RuntimeError):
    """Raised when a subscription is used after it was consumed or cancelled."""


class DialogAction(str, Enum):
    ACCEPT = "accept"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class DialogResponse:
    """How the next dialog is answered."""

    action: DialogAction
    prompt_text: str | None = None
    use_default: bool = False

    @classmethod
    def accept(cls, text: str | None = None) -> "DialogResponse":
        """Accept the dialog, typing ``text`` into a prompt when given."""
        return cls(DialogAction.ACCEPT, prompt_text=text)

    @classmethod
    def dismiss(cls) -> "DialogResponse":
        return cls(DialogAction.DISMISS)

    @classmethod
    def accept_default(cls) -> "DialogResponse":
        """Accept a prompt with its pre-filled default value."""
        return cls(DialogAction.ACCEPT, use_default=True)

    def apply(self, dialog: Dialog) -> None:
        if self.action is DialogAction.DISMISS:
            dialog.dismiss()
        elif self.use_default:
            dialog.accept(dialog.default_value)
        elif self.prompt_text is not None:
            dialog.accept(self.prompt_text)
        else:
            dialog.accept()


@dataclass(frozen=True)
class DialogRecord:
    """What a handled dialog looked like."""

    type: str
    message: str
    default_value: str

    @classmethod
    def from_dialog(cls, dialog: Dialog) -> "DialogRecord":
        return cls(type=dialog.type, message=dialog.message, default_value=dialog.default_value)


class DialogSubscription:
    """
    A registered, single-use response to the next dialog on a page.

    Create one with :func:`expect_dialog`; consume it with :func:`trigger`.
    """

    def __init__(self, page: Page, response: DialogResponse):
        self.page = page
        self.response = response
        self.record: DialogRecord | None = None
        self._active = True
        self.page.on("dialog", self._handle)

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Unregister the handler; the subscription can no longer be triggered."""
        self._ensure_active()
        self._close()

    def _handle(self, dialog: Dialog) -> None:
        if self.record is not None:
            return
        self.record = DialogRecord.from_dialog(dialog)
        logger.info(f"Handling {dialog.type} dialog ({self.response.action.value}): {dialog.message!r}")
        self.response.apply(dialog)

    def _ensure_active(self) -> None:
        if not self._active:
            raise DialogSubscriptionError("Dialog subscription was already used or cancelled")

    def _close(self) -> None:
        self._active = False
        self.page.remove_listener("dialog", self._handle)


def expect_dialog(page: Page, response: DialogResponse) -> DialogSubscription:
    """Register ``response`` for the next dialog raised on ``page``."""
    return DialogSubscription(page, response)


def trigger(
    subscription: DialogSubscription,
    action: Callable[[], object],
    timeout: float | None = None,
) -> DialogRecord:
    """
    Run a dialog-raising ``action`` and wait for the dialog to be handled.

    Args:
        subscription: An active subscription from :func:`expect_dialog`.
        action: Callable that causes the dialog (usually a click).
        timeout: Milliseconds to wait for the dialog; defaults to the
            context's action timeout.

    Returns:
        The record of the handled dialog.

    Raises:
        DialogSubscriptionError: If the subscription is not active.
        playwright.sync_api.TimeoutError: If no dialog appears in time.
    """
    subscription._ensure_active()
    try:
        with subscription.page.expect_event("dialog", timeout=timeout) as event_info:
            action()
        dialog = event_info.value
    finally:
        subscription._close()
    return subscription.record or DialogRecord.from_dialog(dialog)
