"""Recommendation generation package."""

# Use explicit imports:
# from worker.fixes.recommendations import RecommendationGenerator, Recommendation

__all__ = [
    "Recommendation",
    "RecommendationGenerator",
    "Priority",
    "Effort",
    "rule_based_recommendations",
    "fallback_recommendations",
]
