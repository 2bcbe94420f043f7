"""Detour decision engine.

    config_store.py — ConfigStore: live, atomically replaced rule snapshot
    decision.py     — DecisionEngine: navigation events → allow / cancel+redirect
"""
