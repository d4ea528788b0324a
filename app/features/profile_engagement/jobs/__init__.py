from .scheduler import EngagementScheduler, start_engagement_scheduler

__all__ = ["EngagementScheduler", "start_engagement_scheduler"]
