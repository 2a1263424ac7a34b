"""FastAPI dependencies for quizzes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .engine import AssessmentEngine
from .service import QuizService


async def get_quiz_service(request: Request) -> QuizService:
    """Get quiz service from app state."""
    quiz_service = getattr(request.app.state, "quiz_service", None)
    if not quiz_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quiz service not available",
        )
    return quiz_service


async def get_assessment_engine(request: Request) -> AssessmentEngine:
    """Get assessment engine from app state."""
    engine = getattr(request.app.state, "assessment_engine", None)
    if not engine:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quiz service not available",
        )
    return engine


QuizServiceDep = Annotated[QuizService, Depends(get_quiz_service)]
AssessmentEngineDep = Annotated[AssessmentEngine, Depends(get_assessment_engine)]
