from .interaction_service import ProfileInteractionService, profile_interaction_service
from .monitoring_service import EngagementQueueMonitor, engagement_queue_monitor
from .recompute_service import (
    EngagementRunMetrics,
    ProfileEngagementService,
    RecomputeOutcome,
    enqueue,
    is_stale,
    process_queue_once,
    profile_engagement_service,
    recompute_now,
)

__all__ = [
    "EngagementQueueMonitor",
    "EngagementRunMetrics",
    "ProfileEngagementService",
    "ProfileInteractionService",
    "RecomputeOutcome",
    "engagement_queue_monitor",
    "enqueue",
    "is_stale",
    "process_queue_once",
    "profile_engagement_service",
    "profile_interaction_service",
    "recompute_now",
]
