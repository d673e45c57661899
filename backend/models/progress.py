"""
Progress, Flow and Dashboard Models
"""
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class FlowState(str, Enum):
    LESSON = "lesson"
    QUIZ = "quiz"
    GAME = "game"
    COMPLETE = "complete"


class ProgressRecord(BaseModel):
    user_id: int
    lesson_id: str
    completed: bool
    score: int
    completed_at: datetime

    class Config:
        from_attributes = True


class QuizResult(BaseModel):
    score: int
    correct_count: int
    total_questions: int
    passed: bool


class CompletionSummary(BaseModel):
    lesson_id: str
    quiz_score: Optional[int] = None
    game_score: Optional[int] = None
    elapsed_seconds: int


class Destination(BaseModel):
    """Where the client navigates after finishing a lesson."""
    path: str
    lesson_id: Optional[str] = None


class FlowSnapshot(BaseModel):
    flow_id: str
    lesson_id: str
    state: FlowState
    current_question_index: int
    total_questions: int
    answers: Dict[int, int]
    quiz_result: Optional[QuizResult] = None
    game_kind: Optional[str] = None
    game_score: Optional[int] = None
    summary: Optional[CompletionSummary] = None


class AnswerSelection(BaseModel):
    option_index: int


class GameCompletion(BaseModel):
    score: float


class Badge(BaseModel):
    id: str
    name: str
    description: str
    earned: bool
    earned_at: Optional[datetime] = None


class LearnerDashboard(BaseModel):
    user_id: int
    total_quizzes: int
    lessons_completed: int
    total_lessons: int
    average_score: int
    best_score: int
    completion_rate: int
    streak: int
    last_activity: Optional[datetime] = None
    badges: List[Badge] = []
    recent_progress: List[Dict[str, Any]] = []
