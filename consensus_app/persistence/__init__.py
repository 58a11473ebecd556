"""
Prediction history persistence.
"""
from .prediction_store import PredictionStore, StoredPrediction

__all__ = ["PredictionStore", "StoredPrediction"]
