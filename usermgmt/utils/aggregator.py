"""Collects per-target failures so a multi-host loop can finish before reporting."""

from __future__ import annotations

from usermgmt.exceptions import AggregatedPartialFailure


class ResultAggregator:
    """Error messages gathered under one base message.

    Resolves to success when nothing was collected, regardless of the base
    message.
    """

    __slots__ = ("base_message", "_errors")

    def __init__(self, base_message: str) -> None:
        self.base_message = base_message
        self._errors: list[str] = []

    def add_if(self, condition: bool, message: str) -> None:
        """Collect ``message`` only when ``condition`` holds."""
        if condition:
            self._errors.append(message)

    def add(self, message: str) -> None:
        self._errors.append(message)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    def into_result(self) -> None:
        """Raise AggregatedPartialFailure if anything was collected."""
        if self._errors:
            raise AggregatedPartialFailure(self.base_message, self._errors)
