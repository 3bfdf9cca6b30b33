"""ATS database models."""

from .base import Base
from .job import Job
from .candidate import Candidate, CandidateSourcer, CandidateOutreach
from .recruiter import Recruiter, RecruiterCandidate
from .application import Application, ApplicationAuditLog
from .placement import Placement, PlacementCollaborator

__all__ = [
    "Base",
    "Job",
    "Candidate",
    "CandidateSourcer",
    "CandidateOutreach",
    "Recruiter",
    "RecruiterCandidate",
    "Application",
    "ApplicationAuditLog",
    "Placement",
    "PlacementCollaborator",
]
