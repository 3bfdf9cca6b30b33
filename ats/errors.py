"""Typed failures raised by the workflow engine.

Four kinds reach callers: not-found, invalid state transition,
ownership/authorization conflict, and business-rule violation. Each carries
a stable ``code`` plus optional ``details`` safe to show the caller.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for workflow engine errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(WorkflowError):
    """Referenced job, candidate, application or placement does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource} {resource_id} not found" if resource_id else f"{resource} not found"
        super().__init__(message, {"resource": resource, "id": str(resource_id) if resource_id else None})


class InvalidTransitionError(WorkflowError):
    """Requested move is not allowed from the current stage or state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, message: str | None = None):
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Invalid transition from {current} to {requested}",
            {"current": current, "requested": requested},
        )


class OwnershipConflictError(WorkflowError):
    """Caller is not the party of record for this candidate or application."""

    code = "OWNERSHIP_CONFLICT"


class BusinessRuleError(WorkflowError):
    """A marketplace rule forbids the operation."""

    code = "BUSINESS_RULE_VIOLATION"


class DuplicateApplicationError(BusinessRuleError):
    code = "DUPLICATE_APPLICATION"


class CandidateProtectedError(BusinessRuleError):
    code = "CANDIDATE_PROTECTED"


class OverAllocationError(BusinessRuleError):
    code = "SPLIT_OVER_ALLOCATED"


class GuaranteeExpiredError(BusinessRuleError):
    code = "GUARANTEE_EXPIRED"
