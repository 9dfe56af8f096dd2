"""Canonical version strings.

npm publishes bare semver strings (``3.3.3``); module tooling expects a
``v`` prefix (``v3.3.3``). Everything past ingestion works on the prefixed
form. Ordering follows semver precedence; strings that are not valid semver
sort before all valid ones, and ties are broken by plain string order so the
result is a total order.
"""

from __future__ import annotations

from typing import Optional, Tuple

import semantic_version

PREFIX = "v"


def normalize(raw: str) -> str:
    """Return ``raw`` with the ``v`` prefix, leaving prefixed input untouched."""
    if raw.startswith(PREFIX):
        return raw
    return PREFIX + raw


def parse(version: str) -> Optional[semantic_version.Version]:
    """Parse a raw or canonical version, or return None if it is not semver."""
    try:
        return semantic_version.Version(version[len(PREFIX):] if version.startswith(PREFIX) else version)
    except ValueError:
        return None


def is_valid(version: str) -> bool:
    return parse(version) is not None


def _prerelease_key(parts: Tuple[str, ...]) -> tuple:
    # Releases rank above every pre-release of the same core version.
    if not parts:
        return (1,)
    idents = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)
    return (0, idents)


def precedence(version: str) -> tuple:
    """Semver precedence key; build metadata is ignored."""
    parsed = parse(version)
    if parsed is None:
        return (0,)
    return (1, parsed.major, parsed.minor, parsed.patch, _prerelease_key(tuple(parsed.prerelease)))


def sort_key(version: str) -> tuple:
    """Total-order key: semver precedence, then the string itself."""
    return (precedence(version), version)


def compare(a: str, b: str) -> int:
    """Compare two versions by semver precedence only.

    Returns -1, 0 or 1. ``compare("3.3.3", "v3.3.3") == 0``.
    """
    ka, kb = precedence(normalize(a)), precedence(normalize(b))
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def major(version: str) -> str:
    """Return the major component as ``vN``, or "" for invalid versions."""
    parsed = parse(version)
    if parsed is None:
        return ""
    return f"{PREFIX}{parsed.major}"
