"""
Question bank lookups for the adaptive engine.

Questions are served at the section's current level. When that level has
nothing left for the test, the search widens to neighbouring levels, nearest
first (see level_candidates). Reading questions are grouped by passage and a
passage serves at most READING_PASSAGE_MAX_QUESTIONS questions per test.
"""
import logging
from collections import Counter
from typing import Dict, Optional, Set

from sqlalchemy.orm import Session

from entrance.core.adaptive.levels import LevelState, level_candidates
from entrance.core.adaptive.sections import READING_PASSAGE_MAX_QUESTIONS, Section
from entrance.models.models import Question, QuestionPassage, Response

logger = logging.getLogger(__name__)

# Neighbouring levels searched in each direction when the exact level is empty
LEVEL_SEARCH_RADIUS = 3


def answered_question_ids(db: Session, test_id: int) -> Set[int]:
    """IDs of every question already answered in the test."""
    rows = db.query(Response.question_id).filter(Response.test_id == test_id).all()
    return {row[0] for row in rows}


def passage_usage(db: Session, test_id: int) -> Dict[int, int]:
    """Number of answered questions per reading passage in the test."""
    rows = (
        db.query(Question.passage_id)
        .join(Response, Response.question_id == Question.id)
        .filter(Response.test_id == test_id, Question.passage_id.isnot(None))
        .all()
    )
    return dict(Counter(row[0] for row in rows))


def _first_unanswered(query, answered: Set[int]) -> Optional[Question]:
    if answered:
        query = query.filter(Question.id.notin_(sorted(answered)))
    return query.order_by(Question.id).first()


def select_question(
    db: Session,
    test_id: int,
    section: str,
    state: LevelState,
    *,
    search_radius: int = LEVEL_SEARCH_RADIUS,
) -> Optional[Question]:
    """
    Pick the next unanswered, active question for a non-reading section.

    Args:
        db: Database session
        test_id: Test being served
        section: Section key
        state: Section's current level
        search_radius: How many sublevel steps to widen the search

    Returns:
        The question, or None if the bank has nothing left near this level
    """
    answered = answered_question_ids(db, test_id)
    for candidate in level_candidates(state, search_radius):
        query = db.query(Question).filter(
            Question.section == section,
            Question.level == candidate.level,
            Question.sublevel == candidate.sublevel,
            Question.is_active.is_(True),
        )
        question = _first_unanswered(query, answered)
        if question is not None:
            if candidate != state:
                logger.debug(
                    f"No {section} question left at {state} for test {test_id}; "
                    f"serving {candidate}"
                )
            return question
    return None


def select_passage_question(
    db: Session, test_id: int, passage_id: int
) -> Optional[Question]:
    """Next unanswered, active question of a reading passage."""
    answered = answered_question_ids(db, test_id)
    query = db.query(Question).filter(
        Question.passage_id == passage_id,
        Question.is_active.is_(True),
    )
    return _first_unanswered(query, answered)


def select_passage(
    db: Session,
    test_id: int,
    state: LevelState,
    *,
    exclude: Optional[Set[int]] = None,
    search_radius: int = LEVEL_SEARCH_RADIUS,
) -> Optional[QuestionPassage]:
    """
    Pick a reading passage for the test.

    A passage qualifies when it has served fewer than
    READING_PASSAGE_MAX_QUESTIONS questions in this test and still has an
    unanswered active question.

    Args:
        db: Database session
        test_id: Test being served
        state: Reading section's current level
        exclude: Passage ids to skip (e.g. the passage just used up)
        search_radius: How many sublevel steps to widen the search

    Returns:
        The passage, or None if no passage qualifies near this level
    """
    usage = passage_usage(db, test_id)
    skip = exclude or set()
    for candidate in level_candidates(state, search_radius):
        passages = (
            db.query(QuestionPassage)
            .filter(
                QuestionPassage.section == Section.READING.value,
                QuestionPassage.level == candidate.level,
                QuestionPassage.sublevel == candidate.sublevel,
            )
            .order_by(QuestionPassage.id)
            .all()
        )
        for passage in passages:
            if passage.id in skip:
                continue
            if usage.get(passage.id, 0) >= READING_PASSAGE_MAX_QUESTIONS:
                continue
            if select_passage_question(db, test_id, passage.id) is not None:
                return passage
    return None
