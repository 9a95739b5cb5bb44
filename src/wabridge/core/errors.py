"""Error taxonomy shared by the bridge layers."""

from __future__ import annotations

from typing import List, Optional


class BridgeError(Exception):
    """Base class for bridge failures."""


class ConfigValidationError(BridgeError):
    """Malformed configuration or unrecognized model/mode input.

    Raised at startup; the process cannot continue until the config is fixed.
    """

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        lines = "\n".join(f"  - {issue}" for issue in self.issues)
        super().__init__(f"Configuration validation failed:\n{lines}")


class BackendError(BridgeError):
    """The AI backend reported an error for one query."""


class TransportError(BridgeError):
    """A send/typing call failed at the chat transport."""

    def __init__(self, message: str, *, destination: Optional[str] = None):
        super().__init__(message)
        self.destination = destination
