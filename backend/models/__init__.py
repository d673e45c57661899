"""
Learn2Go Models Package
"""
from .user import User, UserCreate, UserLogin, UserResponse, UserRole
from .lesson import Lesson, LessonSummary, QuizQuestion
from .progress import FlowState, ProgressRecord, QuizResult
from .activity import ActivityEvent, ActivityType
