"""Resolve an npm version range against a package's published versions."""

import logging
import re
from typing import Iterable, List, Optional

import semantic_version

from .semver import parse, sort_key

logger = logging.getLogger(__name__)

_PRERELEASE_HINT = re.compile(r"\d-[0-9A-Za-z]")


def _wants_prerelease(spec_str: str) -> bool:
    """A range that itself names a pre-release may match pre-releases."""
    return bool(_PRERELEASE_HINT.search(spec_str))


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax (hyphen, x-ranges) into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return spec_str


def _build_spec(spec_str: str):
    """Parse a range with NpmSpec, falling back to a normalized SimpleSpec."""
    stripped = spec_str.strip()
    if stripped in ("", "*", "x", "latest"):
        stripped = "*"
    try:
        return semantic_version.NpmSpec(stripped)
    except ValueError:
        try:
            return semantic_version.SimpleSpec(_normalize_spec(stripped))
        except ValueError:
            return None


def pick_matching(spec_str: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the highest candidate satisfying the npm range ``spec_str``.

    Candidates may be raw or ``v``-prefixed; the matching candidate is returned
    exactly as given. Returns None when the range cannot be parsed (git URLs,
    ``file:`` specs, aliases) or nothing satisfies it.
    """
    spec = _build_spec(spec_str)
    if spec is None:
        logger.debug("Unsupported npm range %r", spec_str)
        return None

    include_prerelease = _wants_prerelease(spec_str)
    matching: List[str] = []
    for candidate in candidates:
        ver = parse(candidate)
        if ver is None:
            continue
        if ver.prerelease and not include_prerelease:
            continue
        if spec.match(ver):
            matching.append(candidate)

    if not matching:
        return None
    return max(matching, key=sort_key)
