"""Rule compilation for Detour.

compile_rules() turns the persisted rule strings into an immutable
CompiledRuleSet of (source, matcher) pairs. It is the ONLY place rule strings
become matchers; classification never compiles.

Rule syntax:
  - ``/body/flags``  delimited regex, flags drawn from ``gimsuy``
  - anything else   the whole string is the regex body, no flags

Flag mapping onto RE2:
  i → case-insensitive        m → ^/$ match at line boundaries
  s → . matches newline       y → anchored at position 0 (sticky, lastIndex=0)
  g, u → no effect on a single test

IMPORT RULES:
  - `import re2` ONLY — user-authored patterns run on the navigation path and
    must be linear-time. `import re` is PROHIBITED in this package.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import re2  # google-re2. NEVER: import re

from detour.utils.logger import get_logger

logger = get_logger(__name__)

# Flag alphabet accepted after the closing delimiter.
REGEX_FLAG_ALPHABET: frozenset[str] = frozenset("gimsuy")

# Flags that translate into an RE2 inline group, in canonical order.
_INLINE_FLAGS: tuple[str, ...] = ("i", "m", "s")

# Backtracking-only constructs RE2 rejects, checked in order.
_UNSUPPORTED_SYNTAX: tuple[tuple[str, Any], ...] = (
    ("lookbehind", re2.compile(r"\(\?<[=!]")),
    ("lookahead", re2.compile(r"\(\?[=!]")),
    ("backreference", re2.compile(r"\\(?:[1-9]|k<)")),
    ("atomic group", re2.compile(r"\(\?>")),
)


# ─── Compiled types ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CompiledRule:
    """One active rule: the literal source string and its matcher."""

    source: str
    pattern: Any  # re2 compiled regexp
    sticky: bool = False

    def test(self, url: str) -> bool:
        if self.sticky:
            return self.pattern.match(url) is not None
        return self.pattern.search(url) is not None


@dataclass(frozen=True)
class CompiledRuleSet:
    """Immutable, ordered snapshot of compiled rules.

    Replaced wholesale on every change, never mutated, so one
    classification always sees a single consistent rule set.
    """

    rules: tuple[CompiledRule, ...] = ()

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(rule.source for rule in self.rules)

    def matches(self, url: str) -> bool:
        """True if ANY compiled rule accepts the raw URL string."""
        return any(rule.test(url) for rule in self.rules)

    def first_match(self, url: str) -> Optional[str]:
        """Source string of the first rule (insertion order) accepting url."""
        for rule in self.rules:
            if rule.test(url):
                return rule.source
        return None


EMPTY_RULE_SET = CompiledRuleSet()


# ─── Parsing ─────────────────────────────────────────────────────────────────


def split_delimited(rule: str) -> tuple[str, str]:
    """Split a rule string into (body, flags).

    ``/body/flags`` is recognised only when the body is non-empty, contains no
    line break, and every trailing flag is in REGEX_FLAG_ALPHABET. The last
    ``/`` closes the body. Otherwise the whole string is the body.
    """
    if len(rule) < 3 or not rule.startswith("/"):
        return rule, ""
    close = rule.rfind("/")
    if close < 2:
        return rule, ""
    body, flags = rule[1:close], rule[close + 1:]
    if "\n" in body or "\r" in body:
        return rule, ""
    if any(flag not in REGEX_FLAG_ALPHABET for flag in flags):
        return rule, ""
    return body, flags


def _compile_one(rule: str) -> CompiledRule:
    """Compile a single rule string. Raises re2.error / ValueError on failure."""
    body, flags = split_delimited(rule)
    if len(set(flags)) != len(flags):
        raise ValueError(f"duplicate regex flags: {flags!r}")

    inline = "".join(flag for flag in _INLINE_FLAGS if flag in flags)
    expression = f"(?{inline}){body}" if inline else body
    return CompiledRule(
        source=rule,
        pattern=re2.compile(expression),
        sticky="y" in flags,
    )


def unsupported_syntax(rule: str) -> Optional[str]:
    """Name the first backtracking-only construct in a rule body, or None."""
    body, _ = split_delimited(rule)
    for name, pattern in _UNSUPPORTED_SYNTAX:
        if pattern.search(body):
            return name
    return None


def _describe_error(rule: str, exc: Exception) -> str:
    construct = unsupported_syntax(rule)
    if construct:
        return f"{construct} is not supported by the RE2 engine ({exc})"
    return str(exc)


def validate_rule(rule: Any) -> tuple[bool, Optional[str]]:
    """Check whether a rule string would compile.

    Returns (True, None) for a valid rule, (False, error message) otherwise.
    Never raises.
    """
    if not isinstance(rule, str):
        return False, f"rule must be a string, got {type(rule).__name__}"
    try:
        _compile_one(rule)
    except (re2.error, ValueError, TypeError) as exc:
        return False, _describe_error(rule, exc)
    return True, None


# ─── Compilation ─────────────────────────────────────────────────────────────


def compile_rules(rule_strings: Iterable[Any]) -> CompiledRuleSet:
    """Compile an ordered sequence of rule strings into a CompiledRuleSet.

    INVARIANT:
      - NEVER raises. A malformed entry is skipped (WARNING log) and contributes
        neither a source nor a matcher; the rest still compile.
      - Output order equals input order of the well-formed entries.
      - No deduplication.
    """
    compiled: list[CompiledRule] = []

    for index, rule in enumerate(rule_strings):
        if not isinstance(rule, str):
            logger.warning(
                "Rule is not a string — skipping",
                index=index,
                actual_type=type(rule).__name__,
            )
            continue
        try:
            compiled.append(_compile_one(rule))
        except (re2.error, ValueError, TypeError) as exc:
            construct = unsupported_syntax(rule)
            logger.warning(
                f"Invalid rule skipped: {construct} not supported"
                if construct
                else "Invalid rule skipped",
                index=index,
                rule=rule,
                unsupported=construct,
                error=_describe_error(rule, exc),
            )

    return CompiledRuleSet(rules=tuple(compiled))
