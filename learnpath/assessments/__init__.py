"""Track quizzes.

Provides:
- Question management with answer-set validation
- Timed quiz sessions with time-bonus scoring
- Append-only attempt log and per-track results
"""

from .engine import AssessmentEngine, QuizSession, QuizState
from .models import ASSESSMENTS_TABLES_CQL, QuizAnswer, QuizAttempt, QuizQuestion
from .service import AnswerInput, QuizService


__all__ = [
    "ASSESSMENTS_TABLES_CQL",
    "AnswerInput",
    "AssessmentEngine",
    "QuizAnswer",
    "QuizAttempt",
    "QuizQuestion",
    "QuizService",
    "QuizSession",
    "QuizState",
]
