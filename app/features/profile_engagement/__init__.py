"""
Profile engagement feature package.

This vertical slice keeps every layer of the engagement recompute pipeline
co-located (domain models, repositories, pipeline stages, services and the
scheduler) so contributors can navigate the feature without hunting through
global folders.
"""

# Re-export the primary building blocks for easy access.
from .domain.models import EngagementJob, ProfileRecord, TrustScoreResult  # noqa: F401
from .jobs.scheduler import EngagementScheduler, start_engagement_scheduler  # noqa: F401
from .pipeline.targeting import ProfileSnapshot, derive_targeting  # noqa: F401
from .services import (  # noqa: F401
    enqueue,
    is_stale,
    process_queue_once,
    profile_engagement_service,
    profile_interaction_service,
    recompute_now,
)
