"""
Consensus App - Market Signal Consensus Engine

Estimates, once per fixed time window, whether a tracked asset will finish
above or below the window's price-to-beat, and aggregates the live positions
of the best recent market participants into a weighted consensus vote.
"""

__version__ = "0.1.0"
__author__ = "Consensus App Team"
