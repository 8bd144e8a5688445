"""AI Agents package."""

from finquest.agents.ai_agents import (
    INSIGHT_FALLBACK_MESSAGE,
    INSIGHT_OFFLINE_MESSAGE,
    REPORT_FALLBACK_MESSAGE,
    REPORT_OFFLINE_MESSAGE,
    InsightAgent,
    SimplifiedTransaction,
)

__all__ = [
    "INSIGHT_FALLBACK_MESSAGE",
    "INSIGHT_OFFLINE_MESSAGE",
    "REPORT_FALLBACK_MESSAGE",
    "REPORT_OFFLINE_MESSAGE",
    "InsightAgent",
    "SimplifiedTransaction",
]
