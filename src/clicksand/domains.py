"""Hostname canonicalization and rule matching."""

from __future__ import annotations

from typing import Mapping, Optional, TypeVar

T = TypeVar("T")


def normalize_domain(domain: str) -> str:
    """Strip surrounding whitespace, lowercase, and drop a leading 'www.'."""
    value = (domain or "").strip().lower()
    if value.startswith("www."):
        value = value[4:]
    return value


def is_match(current_domain: str, target_domain: str) -> bool:
    """True when current_domain is target_domain or one of its subdomains."""
    current = normalize_domain(current_domain)
    target = normalize_domain(target_domain)
    if not current or not target:
        return False
    return current == target or current.endswith("." + target)


def resolve_rule(domain: str, rules: Mapping[str, T]) -> Optional[T]:
    """Find the rule for a domain: exact key, then normalized root, then suffix.

    The first matching pattern wins; iteration order of the mapping decides
    between overlapping suffix patterns.
    """
    if not domain or not rules:
        return None

    rule = rules.get(domain)
    if rule is not None:
        return rule

    rule = rules.get(normalize_domain(domain))
    if rule is not None:
        return rule

    for pattern, candidate in rules.items():
        if is_match(domain, pattern):
            return candidate
    return None
