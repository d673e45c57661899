"""
Learner Stats - dashboard numbers and badges computed from progress records
"""
from datetime import date, datetime, timedelta
from typing import List, Optional, Dict, Any

from models.progress import Badge, LearnerDashboard, ProgressRecord
from services.quiz_evaluator import round_half_up


def calculate_streak(records: List[ProgressRecord], today: Optional[date] = None) -> int:
    """
    Count consecutive days, ending today, with at least one completed lesson.

    A day without completions breaks the streak; if nothing was completed
    today the streak is 0.
    """
    today = today or date.today()
    days = {r.completed_at.date() for r in records if r.completed}
    streak = 0
    current = today
    while current in days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def _nth_completion(completed: List[ProgressRecord], n: int) -> Optional[datetime]:
    if len(completed) >= n:
        return completed[n - 1].completed_at
    return None


def build_badges(records: List[ProgressRecord], total_lessons: int) -> List[Badge]:
    completed = sorted((r for r in records if r.completed), key=lambda r: r.completed_at)
    high_scores = [r for r in completed if r.score >= 90]
    perfect = [r for r in completed if r.score == 100]
    all_done = total_lessons > 0 and len(completed) >= total_lessons

    return [
        Badge(
            id="first_steps",
            name="First Steps",
            description="Complete your first lesson",
            earned=len(completed) >= 1,
            earned_at=_nth_completion(completed, 1)
        ),
        Badge(
            id="quick_learner",
            name="Quick Learner",
            description="Score 90% or higher on a quiz",
            earned=bool(high_scores),
            earned_at=high_scores[0].completed_at if high_scores else None
        ),
        Badge(
            id="consistent",
            name="Consistent Learner",
            description="Complete 5 lessons",
            earned=len(completed) >= 5,
            earned_at=_nth_completion(completed, 5)
        ),
        Badge(
            id="safety_expert",
            name="Safety Expert",
            description="Complete all available lessons",
            earned=all_done,
            earned_at=completed[-1].completed_at if all_done else None
        ),
        Badge(
            id="perfectionist",
            name="Perfectionist",
            description="Score 100% on 3 quizzes",
            earned=len(perfect) >= 3,
            earned_at=_nth_completion(perfect, 3)
        ),
    ]


def build_dashboard(user_id: int, records: List[ProgressRecord], total_lessons: int,
                    today: Optional[date] = None) -> LearnerDashboard:
    completed = [r for r in records if r.completed]
    scores = [r.score for r in completed]
    counted = min(len(completed), total_lessons)
    latest = max(records, key=lambda r: r.completed_at) if records else None

    recent: List[Dict[str, Any]] = [
        {"lesson_id": r.lesson_id, "score": r.score, "completed": r.completed,
         "completed_at": r.completed_at.isoformat()}
        for r in sorted(records, key=lambda r: r.completed_at, reverse=True)[:5]
    ]

    return LearnerDashboard(
        user_id=user_id,
        total_quizzes=len(completed),
        lessons_completed=len(completed),
        total_lessons=total_lessons,
        average_score=round_half_up(sum(scores) / len(scores)) if scores else 0,
        best_score=max(scores) if scores else 0,
        completion_rate=round_half_up(counted / total_lessons * 100) if total_lessons else 0,
        streak=calculate_streak(records, today),
        last_activity=latest.completed_at if latest else None,
        badges=build_badges(records, total_lessons),
        recent_progress=recent
    )
