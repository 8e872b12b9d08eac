"""
RoadWatch
Backend Application Package

Community-reported road incidents with time-decaying validity, and
incident-aware route computation that detours around blocking reports.
"""

__version__ = "1.0.0"
