"""
URL pattern matching for modules and submodules.
"""
import re
from enum import Enum
from typing import Callable, List, Optional, Sequence
from loguru import logger

from agentlet.core.errors import PatternError

CustomMatcher = Callable[[str, List[str]], bool]


class MatchMode(str, Enum):
    """Strategy used to test a URL against declared patterns."""
    INCLUDES = "includes"
    REGEX = "regex"
    EXACT = "exact"
    CUSTOM = "custom"


class PatternMatcher:
    """
    Evaluates whether a URL matches a module's patterns.

    ``matches`` never raises: invalid regexes and failing custom predicates
    are logged and count as non-matching.
    """

    def __init__(
        self,
        patterns: Sequence[str],
        mode: MatchMode = MatchMode.INCLUDES,
        custom_matcher: Optional[CustomMatcher] = None,
        owner: str = "module",
    ):
        self.patterns: List[str] = list(patterns)
        self.mode = MatchMode(mode)
        self.custom_matcher = custom_matcher
        self.owner = owner

    def matches(self, url: str) -> bool:
        if not self.patterns:
            return False

        if self.mode is MatchMode.REGEX:
            return any(self._regex_matches(pattern, url) for pattern in self.patterns)

        if self.mode is MatchMode.EXACT:
            return url in self.patterns

        if self.mode is MatchMode.CUSTOM:
            if self.custom_matcher is None:
                return False
            try:
                return bool(self.custom_matcher(url, list(self.patterns)))
            except Exception as e:
                logger.warning(f"Custom matcher error in {self.owner}: {e}")
                return False

        return any(pattern in url for pattern in self.patterns)

    def _regex_matches(self, pattern: str, url: str) -> bool:
        try:
            compiled = _compile(pattern)
        except PatternError as e:
            logger.warning(f"Invalid regex pattern in {self.owner}: {e}")
            return False
        return compiled.search(url) is not None


def _compile(pattern: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        raise PatternError(pattern, str(e)) from e
