"""
Trader discovery from resolved windows and consensus voting on live positions.
"""
