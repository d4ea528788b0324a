from .job_repository import EngagementJobRepository, compute_backoff, merge_pending
from .profile_repository import ProfileRepository

__all__ = ["EngagementJobRepository", "ProfileRepository", "compute_backoff", "merge_pending"]
