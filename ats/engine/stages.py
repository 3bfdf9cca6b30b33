"""Stage graphs for applications and placements.

Applications move under two authorities. The strict table covers the
submission and recruiter-routing stages, where each move has a fixed
meaning. Once a company owns the pipeline, any forward move through
submitted, interview, offer and hired is accepted, and so is rejection.
Rejection and withdrawal branch off any stage that is not terminal, but
only the strict table reaches withdrawn, so only the candidate's own
withdraw can end an application that way.

Placements follow one fixed table.
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidTransitionError


class ApplicationStage(str, Enum):
    RECRUITER_PROPOSED = "recruiter_proposed"
    DRAFT = "draft"
    AI_REVIEW = "ai_review"
    SCREEN = "screen"
    SUBMITTED = "submitted"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class PlacementState(str, Enum):
    HIRED = "hired"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STAGES = frozenset(
    {ApplicationStage.HIRED, ApplicationStage.REJECTED, ApplicationStage.WITHDRAWN}
)

# Stages that do not count toward the one-active-application-per-job rule
INACTIVE_STAGES = frozenset({ApplicationStage.REJECTED, ApplicationStage.WITHDRAWN})

SIDE_BRANCHES = frozenset({ApplicationStage.REJECTED, ApplicationStage.WITHDRAWN})

STRICT_TRANSITIONS: dict[ApplicationStage, frozenset[ApplicationStage]] = {
    ApplicationStage.RECRUITER_PROPOSED: frozenset(
        {ApplicationStage.DRAFT, ApplicationStage.REJECTED}
    ),
    ApplicationStage.DRAFT: frozenset({ApplicationStage.AI_REVIEW}),
    ApplicationStage.AI_REVIEW: frozenset(
        {ApplicationStage.SCREEN, ApplicationStage.SUBMITTED}
    ),
    ApplicationStage.SCREEN: frozenset({ApplicationStage.SUBMITTED}),
    # Company pre-screen request sends an unrepresented application back to screen
    ApplicationStage.SUBMITTED: frozenset({ApplicationStage.SCREEN}),
}

PIPELINE_ORDER: tuple[ApplicationStage, ...] = (
    ApplicationStage.SUBMITTED,
    ApplicationStage.INTERVIEW,
    ApplicationStage.OFFER,
    ApplicationStage.HIRED,
)

PLACEMENT_TRANSITIONS: dict[PlacementState, frozenset[PlacementState]] = {
    PlacementState.HIRED: frozenset({PlacementState.ACTIVE, PlacementState.FAILED}),
    PlacementState.ACTIVE: frozenset({PlacementState.COMPLETED, PlacementState.FAILED}),
    PlacementState.COMPLETED: frozenset(),
    PlacementState.FAILED: frozenset(),
}


def parse_stage(value: str | ApplicationStage, current: str = "") -> ApplicationStage:
    try:
        return ApplicationStage(value)
    except ValueError:
        raise InvalidTransitionError(current, str(value), f"Unknown stage: {value}") from None


def is_terminal(stage: str | ApplicationStage) -> bool:
    return ApplicationStage(stage) in TERMINAL_STAGES


def is_active(stage: str | ApplicationStage) -> bool:
    return ApplicationStage(stage) not in INACTIVE_STAGES


def strict_allows(current: str | ApplicationStage, new: str | ApplicationStage) -> bool:
    current, new = ApplicationStage(current), ApplicationStage(new)
    if current in TERMINAL_STAGES:
        return False
    if new in SIDE_BRANCHES:
        return True
    return new in STRICT_TRANSITIONS.get(current, frozenset())


def pipeline_allows(current: str | ApplicationStage, new: str | ApplicationStage) -> bool:
    current, new = ApplicationStage(current), ApplicationStage(new)
    if current in TERMINAL_STAGES:
        return False
    if new == ApplicationStage.REJECTED:
        return True
    if current not in PIPELINE_ORDER or new not in PIPELINE_ORDER:
        return False
    return PIPELINE_ORDER.index(new) > PIPELINE_ORDER.index(current)


def check_strict_transition(current: str, new: str) -> ApplicationStage:
    target = parse_stage(new, current)
    if not strict_allows(current, target):
        raise InvalidTransitionError(current, target.value)
    return target


def check_pipeline_transition(current: str, new: str) -> ApplicationStage:
    target = parse_stage(new, current)
    if not pipeline_allows(current, target):
        if ApplicationStage(current) in TERMINAL_STAGES:
            message = f"Application is {current} and can no longer move"
        else:
            message = f"Cannot move application from {current} to {target.value}"
        raise InvalidTransitionError(current, target.value, message)
    return target


def check_placement_transition(current: str, new: str) -> PlacementState:
    try:
        target = PlacementState(new)
        allowed = PLACEMENT_TRANSITIONS[PlacementState(current)]
    except (KeyError, ValueError):
        raise InvalidTransitionError(current, str(new), f"Unknown placement state: {new}") from None
    if target not in allowed:
        raise InvalidTransitionError(current, target.value)
    return target
