from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def _normalize_pattern(pattern: str) -> str:
    return normalize_path(pattern.strip())


def _translate(pattern: str) -> str | None:
    """Translate a shell glob into a regex whose wildcards never cross ``/``.

    Returns None for malformed patterns (unclosed or empty character class).
    """
    parts: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        i += 1
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            negate = i < n and pattern[i] in "^!"
            start = i + 1 if negate else i
            # A "]" first in the class is a literal member.
            end = pattern.find("]", start + 1)
            if end == -1:
                return None
            body = "".join(ch if ch == "-" else re.escape(ch) for ch in pattern[start:end])
            parts.append(f"[^/{body}]" if negate else f"[{body}]")
            i = end + 1
        else:
            parts.append(re.escape(char))
    return "".join(parts)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    translated = _translate(pattern)
    if translated is None:
        return None
    try:
        return re.compile(translated)
    except re.error:
        # Reversed ranges such as ``[z-a]``.
        return None


def match_glob(pattern: str, name: str) -> bool:
    regex = _compile(pattern)
    return regex is not None and regex.fullmatch(name) is not None


def is_excluded(full_path: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """True if any pattern matches the whole path or any single segment of it."""
    if not patterns:
        return False
    segments = full_path.split("/")
    for pattern in patterns:
        if match_glob(pattern, full_path):
            return True
        if any(match_glob(pattern, segment) for segment in segments):
            return True
    return False


@dataclass(frozen=True, slots=True)
class ExclusionMatcher:
    patterns: tuple[str, ...] = ()

    def excludes(self, path: str) -> bool:
        return is_excluded(normalize_path(path), self.patterns)


def build_exclusion_matcher(
    patterns: list[str] | tuple[str, ...] | None = None,
) -> ExclusionMatcher:
    normalized = tuple(_normalize_pattern(pattern) for pattern in (patterns or []) if pattern)
    return ExclusionMatcher(patterns=tuple(pattern for pattern in normalized if pattern))
