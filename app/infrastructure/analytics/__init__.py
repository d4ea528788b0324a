"""
Analytics ingestion infrastructure.

Fire-and-forget sink for product analytics events emitted by the
engagement pipeline.
"""

from app.infrastructure.analytics.event_sink import AnalyticsEvent, AnalyticsEventSink, analytics_sink

__all__ = ["AnalyticsEvent", "AnalyticsEventSink", "analytics_sink"]
