"""
Quiz Evaluator - scores a quiz attempt
"""
import math
from typing import Dict, List, Optional

from config import settings
from models.lesson import QuizQuestion
from models.progress import QuizResult

PASS_THRESHOLD = settings.QUIZ_PASS_THRESHOLD


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (92.5 -> 93), unlike round()."""
    return int(math.floor(value + 0.5))


class AnswerSet:
    """
    Answers selected during one quiz attempt, keyed by question position.

    Positions are filled as the user answers and are never removed while
    the attempt lasts; only clear() (a retake) empties the set.
    """

    def __init__(self):
        self._answers: Dict[int, int] = {}

    def select(self, position: int, option_index: int) -> None:
        self._answers[position] = option_index

    def get(self, position: int) -> Optional[int]:
        return self._answers.get(position)

    def has_answer(self, position: int) -> bool:
        return position in self._answers

    def clear(self) -> None:
        self._answers = {}

    def as_dict(self) -> Dict[int, int]:
        return dict(self._answers)

    def __len__(self) -> int:
        return len(self._answers)


def count_correct(questions: List[QuizQuestion], answers) -> int:
    """Count positions whose selected option equals the correct one."""
    if isinstance(answers, AnswerSet):
        answers = answers.as_dict()
    elif isinstance(answers, (list, tuple)):
        answers = {i: a for i, a in enumerate(answers) if a is not None}

    correct = 0
    for position, question in enumerate(questions):
        selected = answers.get(position)
        if selected is None:
            continue
        # Out-of-range selections count as unanswered
        if not 0 <= selected < len(question.options):
            continue
        if selected == question.correct_answer:
            correct += 1
    return correct


def evaluate(questions: List[QuizQuestion], answers,
             pass_threshold: int = PASS_THRESHOLD) -> QuizResult:
    """
    Score a quiz attempt.

    Args:
        questions: ordered lesson questions
        answers: AnswerSet, dict of position -> option, or list aligned to questions

    Returns:
        QuizResult with score as a 0-100 percentage
    """
    total = len(questions)
    correct = count_correct(questions, answers)
    score = round_half_up(100 * correct / total) if total else 0
    return QuizResult(
        score=score,
        correct_count=correct,
        total_questions=total,
        passed=total > 0 and score >= pass_threshold
    )
