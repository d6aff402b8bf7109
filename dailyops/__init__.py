"""
Daily operations checklist engine: per-site recurring task instances, audit trail and day rollover.
"""

__version__ = "0.1.0"
