"""Pure-function matching rules.

Rules are stateless functions: (entity, context) -> RuleResult.
No database, no side effects. They decide whether a wanted entry and an
offered book refer to the same title.

Matching key policy:
- Title and author equal after trimming, collapsing internal whitespace
  and case-folding is the matching key.
- Equal ISBNs (ISBN-10 converted to ISBN-13 first) on both entries are an
  alternative sufficient condition. Differing ISBNs do not veto a
  title/author match.
There is no fuzzy matching.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

_WHITESPACE = re.compile(r"\s+")
_ISBN_CHARS = re.compile(r"[^0-9X]")


class CatalogEntry(Protocol):
    title: str
    author: str
    isbn: Optional[str]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def normalize_text(value: str | None) -> str:
    """Trim, collapse internal whitespace and case-fold."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().casefold()


def normalize_isbn(value: str | None) -> str | None:
    """Return the ISBN-13 form of ``value``, or None if it is not an ISBN.

    Hyphens and spaces are ignored. A 10-character ISBN is re-prefixed with
    978 and gets a recomputed check digit.
    """
    if not value:
        return None
    raw = _ISBN_CHARS.sub("", value.upper())
    if len(raw) == 13 and raw.isdigit():
        return raw
    if len(raw) == 10 and raw[:9].isdigit():
        body = "978" + raw[:9]
        total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(body))
        return body + str((10 - total % 10) % 10)
    return None


def matching_key(entry: CatalogEntry) -> tuple[str, str]:
    """The normalized (title, author) identity of a catalog entry."""
    return normalize_text(entry.title), normalize_text(entry.author)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def check_same_title(wanted: CatalogEntry, offered: CatalogEntry) -> RuleResult:
    """Check whether a wanted entry and an offered book are the same title."""
    wanted_isbn = normalize_isbn(wanted.isbn)
    offered_isbn = normalize_isbn(offered.isbn)

    if wanted_isbn and wanted_isbn == offered_isbn:
        return RuleResult(
            passed=True,
            rule_name="isbn_match",
            message="ISBNs match",
            details={"wanted_isbn": wanted_isbn, "offered_isbn": offered_isbn},
        )

    wanted_key = matching_key(wanted)
    offered_key = matching_key(offered)
    passed = bool(wanted_key[0]) and wanted_key == offered_key
    return RuleResult(
        passed=passed,
        rule_name="title_author_match",
        message="Title and author match" if passed else "Title or author differ",
        details={"wanted_key": wanted_key, "offered_key": offered_key},
    )


def find_wanted_match(
    wishlist: Iterable[CatalogEntry], offered: CatalogEntry
) -> RuleResult:
    """Check whether any entry of ``wishlist`` wants ``offered``.

    Returns the first passing result, or a failing ``wishlist_match`` result.
    """
    checked = 0
    for wanted in wishlist:
        checked += 1
        result = check_same_title(wanted, offered)
        if result.passed:
            return result
    return RuleResult(
        passed=False,
        rule_name="wishlist_match",
        message=f"None of {checked} wanted entries match",
        details={"checked": checked},
    )
