"""
External data access: typed fetch results, TTL caching, payload parsing and
HTTP sources for prices, window resolutions and participant positions.
"""
