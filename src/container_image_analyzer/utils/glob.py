"""Glob matching for absolute archive paths.

Patterns follow the usual shell conventions, with two additions:

- ``**`` as a whole segment matches zero or more directories.
- Wildcards never match a segment that starts with a dot unless the pattern
  segment itself starts with a literal dot.

Relative patterns are anchored at the filesystem root, so ``**/node`` and
``/**/node`` are equivalent.
"""

import re
from functools import lru_cache
from typing import Callable, Iterable, Pattern

_DOUBLE_STAR = r"(?:/(?!\.)[^/]+)*"


def _translate_segment(segment: str) -> str:
    regex = []
    i = 0
    n = len(segment)
    while i < n:
        char = segment[i]
        i += 1
        if char == "*":
            while i < n and segment[i] == "*":
                i += 1
            regex.append("[^/]*")
        elif char == "?":
            regex.append("[^/]")
        elif char == "[":
            end = segment.find("]", i + 1 if i < n and segment[i] in "!^" else i)
            if end == -1:
                regex.append(re.escape(char))
                continue
            body = segment[i:end]
            i = end + 1
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            body = body.replace("\\", "\\\\").replace("/", "")
            regex.append(f"[{body}]")
        else:
            regex.append(re.escape(char))

    translated = "".join(regex)
    if segment[:1] in ("*", "?", "["):
        translated = r"(?!\.)" + translated
    return translated


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    if not pattern.startswith("/"):
        pattern = "/" + pattern

    regex = ""
    for segment in pattern.split("/")[1:]:
        if segment == "**":
            regex += _DOUBLE_STAR
        else:
            regex += "/" + _translate_segment(segment)
    return re.compile(f"^{regex}$")


def glob_match(path: str, pattern: str) -> bool:
    """Return True if the absolute ``path`` matches ``pattern``."""
    return compile_glob(pattern).match(path) is not None


def make_path_matcher(
    include: Iterable[str], exclude: Iterable[str] = ()
) -> Callable[[str], bool]:
    """Build a predicate matching any include glob and no exclude glob."""
    include_patterns = [compile_glob(pattern) for pattern in include]
    exclude_patterns = [compile_glob(pattern) for pattern in exclude]

    def matches(path: str) -> bool:
        if any(pattern.match(path) for pattern in exclude_patterns):
            return False
        return any(pattern.match(path) for pattern in include_patterns)

    return matches
