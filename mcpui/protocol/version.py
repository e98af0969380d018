"""Protocol version compatibility rules."""

from __future__ import annotations

from typing import Optional

from packaging.version import InvalidVersion, Version

from mcpui.protocol.types import ProtocolSupport


def _parse(version: object) -> Optional[Version]:
    if not isinstance(version, str) or not version.strip():
        return None
    try:
        return Version(version.strip())
    except InvalidVersion:
        return None


def major_version(version: object) -> Optional[int]:
    """Return the MAJOR component of a version string, or None if unparsable."""
    parsed = _parse(version)
    return parsed.major if parsed is not None else None


def is_compatible_version(ours: object, theirs: object) -> bool:
    """Two versions are compatible iff their MAJOR components are equal."""
    our_major = major_version(ours)
    their_major = major_version(theirs)
    if our_major is None or their_major is None:
        return False
    return our_major == their_major


def supports_version(support: ProtocolSupport, version: str) -> bool:
    """Check a version against a UI's declared ``protocol_support`` range.

    The lower bound is ``min_version``; the upper bound is any release sharing
    the MAJOR of ``target_version``.
    """
    parsed = _parse(version)
    minimum = _parse(support.min_version)
    target = _parse(support.target_version)
    if parsed is None or minimum is None or target is None:
        return False
    return parsed >= minimum and parsed.major == target.major
