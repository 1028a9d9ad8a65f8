"""
examprep: background workflow queue and admin-managed user access for the
exam-preparation app.
"""

__version__ = "0.1.0"
