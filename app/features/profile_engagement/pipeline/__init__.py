"""
Pipeline components for profile engagement.

Stages of the recompute: aggregation, scoring, targeting and analytics.
Subpackages expose the primary services that other layers use.
"""

__all__ = ["aggregation", "analytics", "scoring", "targeting"]
