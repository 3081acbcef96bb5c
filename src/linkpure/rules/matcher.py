"""Single-rule application.

This module applies one RuleRecord to one URL:
- Pattern matching (search anywhere in the URL)
- Substitution templates with $N capture group references
- Path cleaning (empty substitution removes the matched text)
- Query parameter stripping
"""

import logging
import re
from functools import lru_cache
from typing import Iterable, Optional
from urllib.parse import unquote_plus

from linkpure.core.constants import GROUP_REFERENCE, PATTERN_ERRORS
from linkpure.core.models import RuleRecord


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern:
    """Compile and cache a rule pattern.

    Raises:
        re.error, OverflowError, RecursionError: If the pattern is invalid
    """
    return re.compile(pattern)


def expand_substitution(template: str, match: re.Match) -> str:
    """Expand ``$N`` / ``${N}`` references in a substitution template.

    Captured values are query-unescaped (``+`` becomes a space) before
    insertion. References to groups the pattern does not define are left
    as written; groups that did not take part in the match expand to an
    empty string.
    """
    group_count = match.re.groups

    def _replace(ref: re.Match) -> str:
        index = int(ref.group(1) or ref.group(2))
        if index < 1 or index > group_count:
            return ref.group(0)
        value = match.group(index)
        if value is None:
            return ""
        return unquote_plus(value)

    return GROUP_REFERENCE.sub(_replace, template)


def remove_query_params(url: str, names: Iterable[str]) -> Optional[str]:
    """Strip the named query parameters from a URL.

    Remaining parameters keep their original encoding and order. The
    fragment is preserved.

    Args:
        url: URL to clean
        names: Literal parameter names to remove

    Returns:
        Cleaned URL, or None if none of the parameters was present
    """
    targets = set(names)

    base, hash_sign, fragment = url.partition("#")
    path, question, query = base.partition("?")
    if not question or not query:
        return None

    kept = []
    removed = False
    for pair in query.split("&"):
        key = unquote_plus(pair.split("=", 1)[0])
        if key in targets:
            removed = True
        else:
            kept.append(pair)

    if not removed:
        return None

    kept = [pair for pair in kept if pair]
    cleaned = path + ("?" + "&".join(kept) if kept else "")
    return cleaned + hash_sign + fragment


def apply_rule(rule: RuleRecord, url: str) -> Optional[str]:
    """Apply a rule to a URL.

    Args:
        rule: Rule to apply (its ``enabled`` flag is not consulted here)
        url: URL to rewrite

    Returns:
        Rewritten URL, or None if the rule does not apply
    """
    try:
        pattern = compile_pattern(rule.match_pattern)
    except PATTERN_ERRORS as e:
        logger.debug(f"Skipping rule {rule.id}: pattern does not compile ({e})")
        return None

    match = pattern.search(url)
    if match is None:
        return None

    if rule.strips_params:
        return remove_query_params(url, rule.remove_params)

    if rule.substitution:
        return expand_substitution(rule.substitution, match)

    # Path cleaning: drop every occurrence of the pattern
    return pattern.sub("", url)
