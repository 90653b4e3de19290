# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations


class LedgerAnalyticsError(Exception):
    """Base class for all ledger-analytics errors."""

    def __init__(self, message: str, code: str = "ANALYTICS_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(LedgerAnalyticsError):
    """
    Raised when a referenced entity does not exist in its store.

    Attributes:
        entity: Kind of entity that was looked up (``'budget'``, ``'category'``).
        entity_id: The identifier that could not be resolved.
    """

    def __init__(self, entity: str, entity_id: str, code: str = "NOT_FOUND") -> None:
        super().__init__(f"{entity.capitalize()} '{entity_id}' does not exist.", code=code)
        self.entity = entity
        self.entity_id = entity_id


class BudgetNotFoundError(NotFoundError):
    """Raised when a budget cannot be found for the requesting user."""

    def __init__(self, budget_id: str, user_id: str | None = None) -> None:
        super().__init__("budget", budget_id, code="BUDGET_NOT_FOUND")
        self.budget_id = budget_id
        self.user_id = user_id


class InvalidRangeError(LedgerAnalyticsError):
    """
    Raised for a date range whose end precedes its start.

    Only raised when strict range checking is enabled; the default policy is
    to return an empty result for an inverted range.
    """

    def __init__(self, start: object, end: object) -> None:
        super().__init__(
            f"Date range end {end} is before start {start}.",
            code="INVALID_RANGE",
        )
        self.start = start
        self.end = end


class UpstreamFailureError(LedgerAnalyticsError):
    """
    Raised when a Ledger Store or Budget Store call fails.

    Attributes:
        operation: Name of the store operation that failed.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store call '{operation}' failed{detail}", code="UPSTREAM_FAILURE")
        self.operation = operation


class ComputeError(LedgerAnalyticsError):
    """Raised when a result cannot be computed from the given inputs."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="COMPUTE_ERROR")


class ConfigurationError(LedgerAnalyticsError):
    """Raised when the engine or one of its components is misconfigured."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
