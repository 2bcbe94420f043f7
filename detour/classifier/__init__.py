"""Detour URL classifier.

Public API:
    classify          — url → AtSentinel | WrappedRedirect | Plain
    is_spa_candidate  — PLAIN-path check used by the SPA observers
"""
from detour.classifier.url import (
    AtSentinel,
    Classification,
    Plain,
    WrappedRedirect,
    classify,
    extract_wrapped_destination,
    is_at_sentinel,
    is_spa_candidate,
)

__all__ = [
    "AtSentinel",
    "Classification",
    "Plain",
    "WrappedRedirect",
    "classify",
    "extract_wrapped_destination",
    "is_at_sentinel",
    "is_spa_candidate",
]
