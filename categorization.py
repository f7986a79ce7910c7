"""Rule-based transaction categorization.

Given the stored categorization rules, decide which category a transaction
should receive, and propose new rules from transactions a user has already
categorized.

Matching looks at the description only. Rules are evaluated enabled-only,
highest priority first, ties in insertion order; the first rule whose pattern
matches wins. Literal patterns match as case-insensitive substrings, regex
patterns are searched case-insensitively anywhere in the description.
"""

import re
from typing import Iterable, List, Optional, Tuple

from models.rule import CategorizationRule, Pattern, compile_pattern
from schemas import RuleCreateInput
from logger import get_logger

logger = get_logger()


def _description_of(transaction) -> str:
    if isinstance(transaction, str):
        return transaction
    return getattr(transaction, "description", None) or ""


class RuleEngine:
    """Compiled, ordered view over a set of categorization rules.

    Patterns are compiled once, when the engine is built. A stored regex that
    fails to compile is logged, recorded in ``invalid_rule_ids`` and treated
    as a non-match; it never aborts a match pass.

    Args:
        rules: Rules in insertion order. Disabled rules are ignored.
    """

    def __init__(self, rules: Iterable[CategorizationRule]):
        self.invalid_rule_ids: List[str] = []
        enabled = [rule for rule in rules if rule.is_enabled]

        # sorted() is stable, so equal priorities keep insertion order
        ordered = sorted(enabled, key=lambda rule: -rule.priority)

        self._compiled: List[Tuple[CategorizationRule, Pattern]] = []
        for rule in ordered:
            try:
                pattern = compile_pattern(rule.pattern, rule.is_regex)
            except re.error as e:
                logger.warning(
                    f"Skipping rule {rule.id}: invalid regex {rule.pattern!r} ({e})"
                )
                self.invalid_rule_ids.append(rule.id)
                continue
            self._compiled.append((rule, pattern))

    def __len__(self) -> int:
        return len(self._compiled)

    def match_rule(self, transaction) -> Optional[CategorizationRule]:
        """Find the first rule matching a transaction.

        Args:
            transaction: Anything with a ``description`` attribute, or the
                description string itself.

        Returns:
            The winning rule, or None if no rule matches.
        """
        description = _description_of(transaction)
        if not description:
            return None

        for rule, pattern in self._compiled:
            if pattern.matches(description):
                logger.debug(f"Rule {rule.id} ({rule.pattern!r}) matched {description!r}")
                return rule
        return None

    def match(self, transaction) -> Optional[str]:
        """Return the category id of the first matching rule, or None."""
        rule = self.match_rule(transaction)
        return rule.category_id if rule else None


def match(rules: Iterable[CategorizationRule], transaction) -> Optional[str]:
    """Match a transaction against rules without keeping the compiled engine."""
    return RuleEngine(rules).match(transaction)


def suggest_rule(transaction, category_id: Optional[str]) -> Optional[RuleCreateInput]:
    """Propose a literal rule from a categorized transaction's description.

    Short descriptions (three words or fewer) are used verbatim. Longer ones
    are cut to their first two or first three words, whichever is shorter.

    Args:
        transaction: Transaction (or draft) whose description seeds the rule.
        category_id: Category the rule should assign.

    Returns:
        A rule draft ready for RuleService.create, or None if there is no
        description or no category.
    """
    description = _description_of(transaction)
    if not description or not category_id:
        return None

    words = description.split()
    if len(words) <= 3:
        pattern = description
    else:
        first_two = " ".join(words[:2])
        first_three = " ".join(words[:3])
        pattern = min(first_two, first_three, key=len)

    return RuleCreateInput(
        pattern=pattern,
        is_regex=False,
        description=f'Auto-generated rule for "{description}"',
        priority=0,
        is_enabled=True,
        category_id=category_id,
    )
