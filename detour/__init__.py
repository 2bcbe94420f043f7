"""Detour — local navigation-diversion service.

Classifies top-level browser navigations against user rules and diverts
matches to a local blocked page, keeping a bounded audit trail.
"""

__version__ = "1.0.0"
