"""
Data models for indicator snapshots.
"""
