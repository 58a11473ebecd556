"""
Utility functions module.

Time Semantics:
- Window boundaries are derived from UTC wall-clock time
- A window id is the window prefix plus the window start in epoch seconds
- Elapsed time inside a window drives the adaptive commit threshold
"""
