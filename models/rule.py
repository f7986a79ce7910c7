"""Categorization rule model and compiled pattern variants."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass
class CategorizationRule:
    """A stored pattern-to-category mapping.

    Attributes:
        id: Unique identifier (generated on creation).
        pattern: Literal substring or regex source, depending on is_regex.
        is_regex: Whether pattern is a regular expression.
        description: Optional note about the rule.
        priority: Higher priorities are evaluated first.
        is_enabled: Disabled rules never match.
        category_id: Category assigned when the rule matches.
        created_at: Timestamp when the rule was created.
        updated_at: Timestamp of the last mutation.
    """

    id: str
    pattern: str
    is_regex: bool
    description: Optional[str]
    priority: int
    is_enabled: bool
    category_id: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class LiteralPattern:
    """Case-insensitive substring pattern."""

    text: str

    def matches(self, description: str) -> bool:
        return self.text.casefold() in description.casefold()


@dataclass(frozen=True)
class RegexPattern:
    """Compiled regular expression, searched anywhere in the description."""

    source: str
    regex: re.Pattern

    def matches(self, description: str) -> bool:
        return self.regex.search(description) is not None


Pattern = Union[LiteralPattern, RegexPattern]


def compile_pattern(pattern: str, is_regex: bool) -> Pattern:
    """Build the pattern variant for a rule.

    Args:
        pattern: Literal text or regex source.
        is_regex: Whether to compile pattern as a regular expression.

    Returns:
        A LiteralPattern or RegexPattern.

    Raises:
        re.error: If is_regex is set and the pattern does not compile.
    """
    if is_regex:
        return RegexPattern(source=pattern, regex=re.compile(pattern, re.IGNORECASE))
    return LiteralPattern(text=pattern)
