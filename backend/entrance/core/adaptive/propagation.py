"""
Cross-section level propagation.

When a section's level changes, sections that follow it through a parallel
rule (see SECTION_PARALLEL_RULES) are re-seeded from it, as long as they
have not started serving questions yet. Traversal is depth-first from the
section that changed. Each dependent's target is the source's state shifted
by the rule's offset, and traversal continues from that target whether or
not the dependent was actually written, so sections further down the chain
stay consistent with the section that drove the change.

Writes are single-row updates committed one at a time. A database error
while reading or writing a row is logged and stops the remaining
propagation for that call; it never fails the request that triggered it.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from entrance.core.adaptive.levels import LevelState, shift_by
from entrance.core.adaptive.sections import (
    SECTION_PARALLEL_DEPENDENTS,
    ParallelDependent,
)
from entrance.models.models import TestSection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropagationTarget:
    """Level a dependent section should hold after a change to ``source``."""

    section: str
    source: str
    target: LevelState


def propagation_targets(
    source_section: str,
    source_state: LevelState,
    dependents: Optional[Dict[str, List[ParallelDependent]]] = None,
) -> List[PropagationTarget]:
    """
    Depth-first list of dependent targets reachable from ``source_section``.

    The result does not depend on stored rows, so it is fully determined by
    the rules and the new source state.

    Args:
        source_section: Section whose level changed
        source_state: Its new level
        dependents: base -> dependents map (defaults to the configured rules)

    Returns:
        Targets in visit order. Each section appears at most once.
    """
    graph = SECTION_PARALLEL_DEPENDENTS if dependents is None else dependents
    visited = {source_section}
    targets: List[PropagationTarget] = []

    def visit(section: str, state: LevelState) -> None:
        for dependent in graph.get(section, []):
            if dependent.section in visited:
                continue
            visited.add(dependent.section)
            target = shift_by(state, dependent.offset)
            targets.append(
                PropagationTarget(
                    section=dependent.section, source=section, target=target
                )
            )
            visit(dependent.section, target)

    visit(source_section, source_state)
    return targets


def section_row_state(row: TestSection) -> LevelState:
    """Current LevelState of a stored section row."""
    return LevelState(level=row.current_level, sublevel=row.current_sublevel)


def needs_overwrite(row: Optional[TestSection], target: LevelState) -> bool:
    """A dependent is rewritten only while unstarted and when its level differs."""
    if row is None or row.questions_served != 0:
        return False
    return section_row_state(row) != target


def sync_dependent_sections(
    db: Session,
    test_id: int,
    source_section: str,
    source_state: LevelState,
    *,
    targets: Optional[Sequence[PropagationTarget]] = None,
) -> List[str]:
    """
    Propagate a level change to the unstarted dependents of a section.

    Args:
        db: Database session
        test_id: Test whose sections are synced
        source_section: Section whose level changed
        source_state: Its new level
        targets: Precomputed targets (defaults to propagation_targets())

    Returns:
        Sections that were rewritten, in write order. On a database error
        the list holds the writes committed before the failure.
    """
    if targets is None:
        targets = propagation_targets(source_section, source_state)

    updated: List[str] = []
    for item in targets:
        try:
            row = (
                db.query(TestSection)
                .filter(
                    TestSection.test_id == test_id,
                    TestSection.section == item.section,
                )
                .first()
            )
            if not needs_overwrite(row, item.target):
                continue
            row.current_level = item.target.level
            row.current_sublevel = item.target.sublevel
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Propagation from {source_section} stopped at {item.section} "
                f"(test_id={test_id}): {e}",
                exc_info=True,
            )
            break

        updated.append(item.section)
        logger.info(
            f"Propagated {item.source} -> {item.section} at {item.target} "
            f"(test_id={test_id})"
        )

    return updated
