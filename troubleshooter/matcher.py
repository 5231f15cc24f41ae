"""
Playbook Matcher

Keyword scoring of free-text problem descriptions against playbooks.
"""

from dataclasses import dataclass
from typing import Optional

from .playbooks import PlaybookCatalog, PlaybookRecord

KEYWORD_WEIGHT = 2
HEURISTIC_WEIGHT = 1
MATCH_THRESHOLD = 2


@dataclass(frozen=True)
class PlaybookMatch:
    """A playbook that cleared the match threshold."""

    record: PlaybookRecord
    score: int


def normalize(text: Optional[str]) -> str:
    return (text or "").lower().strip()


def score_playbook(record: PlaybookRecord, free_text: Optional[str]) -> int:
    """
    Score how well a description fits a playbook.

    Every keyword found in the text adds KEYWORD_WEIGHT, once per keyword no
    matter how often it appears. Mentions of "error" and "fail" each add
    HEURISTIC_WEIGHT.
    """
    text = normalize(free_text)
    score = 0
    for keyword in record.keywords:
        if normalize(keyword) in text:
            score += KEYWORD_WEIGHT

    # light bonus for common symptom terms
    if "error" in text:
        score += HEURISTIC_WEIGHT
    if "fail" in text or "failed" in text:
        score += HEURISTIC_WEIGHT
    return score


def find_best_match(
    catalog: Optional[PlaybookCatalog],
    category: Optional[str],
    free_text: Optional[str],
) -> Optional[PlaybookMatch]:
    """
    Pick the highest scoring playbook of a category.

    Args:
        catalog: Loaded playbook catalog
        category: Category to search
        free_text: Problem description

    Returns:
        The best match, or None when nothing reaches MATCH_THRESHOLD.
        On equal scores the playbook listed first wins.
    """
    candidates = catalog.get(category, ()) if catalog and category is not None else ()

    best: Optional[PlaybookRecord] = None
    best_score = 0
    for record in candidates:
        score = score_playbook(record, free_text)
        # strict comparison keeps the earliest candidate on ties
        if score > best_score:
            best = record
            best_score = score

    if best is None or best_score < MATCH_THRESHOLD:
        return None
    return PlaybookMatch(record=best, score=best_score)
