"""Detour rule compilation.

Public API:
    CompiledRule     — one (source, matcher) pair
    CompiledRuleSet  — immutable ordered snapshot of compiled rules
    compile_rules    — rule strings → CompiledRuleSet (never raises)
    validate_rule    — (ok, error) check for a single rule string
"""
from detour.rules.compiler import (
    EMPTY_RULE_SET,
    CompiledRule,
    CompiledRuleSet,
    compile_rules,
    validate_rule,
)

__all__ = [
    "EMPTY_RULE_SET",
    "CompiledRule",
    "CompiledRuleSet",
    "compile_rules",
    "validate_rule",
]
