"""
Window lock state machine: one committed prediction per fixed time window.
"""
