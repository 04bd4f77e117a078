"""Failure taxonomy of the action executor.

None of these escape the executor: each is turned into an unsuccessful
ActionResult whose message starts with the error code.
"""

from __future__ import annotations

from typing import Optional, Sequence


class AutomationError(Exception):
    code = "AutomationError"

    def __init__(self, detail: str) -> None:
        super().__init__(f"{self.code}: {detail}")
        self.detail = detail


class ElementNotFound(AutomationError):
    code = "NotFound"

    def __init__(self, handle: Optional[str], available: Sequence[str] = (), reason: str | None = None) -> None:
        self.handle = handle
        self.available = list(available)
        if reason:
            detail = f"element {handle} {reason}"
        elif handle:
            detail = f"element {handle} not found in the current snapshot"
        else:
            detail = "no element handle given"
        if self.available:
            detail += f". Available refs: {', '.join(self.available)}"
        else:
            detail += ". No refs available; request a new snapshot"
        super().__init__(detail)


class WrongElementKind(AutomationError):
    code = "WrongElementKind"

    def __init__(self, handle: Optional[str], actual: str, expected: str) -> None:
        self.handle = handle
        self.actual = actual
        self.expected = expected
        super().__init__(f"{handle} is <{actual}>, not {expected}")


class OptionNotFound(AutomationError):
    code = "OptionNotFound"

    def __init__(self, handle: Optional[str], value: str, options: Sequence[str] = ()) -> None:
        self.handle = handle
        self.value = value
        self.options = list(options)
        detail = f'no option in {handle} matched "{value}"'
        if self.options:
            detail += f". Options: {', '.join(repr(o) for o in self.options)}"
        super().__init__(detail)


class ExecutionError(AutomationError):
    code = "ExecutionError"

    def __init__(self, action: str, handle: Optional[str], cause: BaseException | str) -> None:
        self.action = action
        self.handle = handle
        self.cause = cause
        target = handle or "active element"
        super().__init__(f"{action} on {target} failed: {cause}")
