"""
Goal Suggestion Heuristic

Maps a free-text research goal to candidate module ids by keyword matching.

The table is ordered: groups fire in table order, their module lists are
concatenated, and duplicates are dropped keeping the first occurrence. That
order is the tie-break when a module is reachable through several topics.
"""

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class KeywordGroup:
    """A research topic, the phrases that signal it, and the modules it suggests."""
    topic: str
    keywords: Tuple[str, ...]
    module_ids: Tuple[str, ...]

    def matches(self, goal_lower: str) -> bool:
        return any(kw in goal_lower for kw in self.keywords)


KEYWORD_GROUPS: Tuple[KeywordGroup, ...] = (
    KeywordGroup(
        topic="antibody",
        keywords=("antibody", "immunoglobulin", "cdr"),
        module_ids=("rfantibody", "temstapro", "geodock"),
    ),
    KeywordGroup(
        topic="de_novo",
        keywords=("de novo", "novel protein", "new protein", "design"),
        module_ids=("rfdiffusion", "proteinmpnn", "alphafold2"),
    ),
    KeywordGroup(
        topic="structure_prediction",
        keywords=("structure prediction", "fold", "predict structure"),
        module_ids=("alphafold2", "esmfold"),
    ),
    KeywordGroup(
        topic="stability",
        keywords=("stability", "thermostab", "stable"),
        module_ids=("temstapro",),
    ),
    KeywordGroup(
        topic="evolution",
        keywords=("evolution", "optimize", "improve", "mutant"),
        module_ids=("evoprotgrad", "temstapro"),
    ),
    KeywordGroup(
        topic="docking",
        keywords=("dock", "binding", "interaction", "complex"),
        module_ids=("geodock",),
    ),
    KeywordGroup(
        topic="sequence_design",
        keywords=("sequence design", "inverse fold"),
        module_ids=("proteinmpnn",),
    ),
    KeywordGroup(
        topic="screening",
        keywords=("fast", "quick", "screen"),
        module_ids=("esmfold",),
    ),
)


def matched_groups(goal: str, groups: Tuple[KeywordGroup, ...] = KEYWORD_GROUPS) -> List[KeywordGroup]:
    """Keyword groups that fire for `goal`, in table order."""
    if not goal:
        return []
    goal_lower = goal.lower()
    return [g for g in groups if g.matches(goal_lower)]


def suggest_modules_for_goal(goal: str, groups: Tuple[KeywordGroup, ...] = KEYWORD_GROUPS) -> List[str]:
    """
    Ranked, deduplicated module ids for a research goal.

    Returns an empty list when nothing matches; choosing a default is the
    caller's job.
    """
    suggestions: List[str] = []
    for group in matched_groups(goal, groups):
        for module_id in group.module_ids:
            if module_id not in suggestions:
                suggestions.append(module_id)
    return suggestions
