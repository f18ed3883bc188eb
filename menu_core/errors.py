from __future__ import annotations


class MenuCoreError(Exception):
    """Base class for recoverable menu engine errors."""


class StaleReferenceError(MenuCoreError):
    """A window, item or handle was used after the host destroyed it."""


class LookupMissError(MenuCoreError):
    """An application or favorite could not be resolved."""


class SubscriptionTeardownError(MenuCoreError):
    """Disconnecting a signal handle failed."""
