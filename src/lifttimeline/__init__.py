"""Lift operation timelines for ski resorts.

Turns sparse lift status-change events into fixed-grid day timelines and
caches them per resort and day.
"""

__version__ = "0.1.0"
