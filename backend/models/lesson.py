"""
Lesson and Quiz Question Models
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime


class QuizQuestion(BaseModel):
    id: str
    question: str
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def check_correct_answer(self):
        if self.correct_answer >= len(self.options):
            raise ValueError(
                f"correct_answer {self.correct_answer} is outside the {len(self.options)} options"
            )
        return self

    class Config:
        from_attributes = True
        frozen = True


class Lesson(BaseModel):
    """A lesson as served by the content store; immutable for a visit."""
    id: str
    title: str
    description: str = ""
    content: str = ""
    quiz_questions: List[QuizQuestion] = []
    level: int = Field(ge=1, default=1)
    language: str = "en"
    country: str = "US"
    category: Optional[str] = None
    tags: List[str] = []

    class Config:
        from_attributes = True
        frozen = True


class LessonSummary(BaseModel):
    id: str
    title: str
    description: str = ""
    level: int = 1
    language: str = "en"
    country: str = "US"
    questions_count: int = 0
    completed: bool = False
    score: Optional[int] = None
    completed_at: Optional[datetime] = None


class QuizQuestionCreate(BaseModel):
    question: str
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def check_correct_answer(self):
        if self.correct_answer >= len(self.options):
            raise ValueError("correct_answer must index one of the options")
        return self


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    content: str = ""
    level: int = Field(ge=1, default=1)
    language: str = "en"
    country: str = "US"
    category: Optional[str] = None
    tags: List[str] = []
    quiz_questions: List[QuizQuestionCreate] = []


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=1)
    language: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
