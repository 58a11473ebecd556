"""Weighted bull/bear scoring of indicator snapshots"""

from .scorer import Direction, PredictionResult, PredictionScorer

__all__ = ["Direction", "PredictionResult", "PredictionScorer"]
