"""Scoring rules shared by assignment submissions, DPPs and quizzes.

Everything here is pure: callers pass plain values and persist the results
themselves. Duplicate answers for the same question are rejected so a
question can only ever be scored once.
"""
from app.core.config import LETTER_GRADE_THRESHOLDS
from app.core.errors import ValidationFailed


def letter_grade(percentage: float) -> str:
    for threshold, letter in LETTER_GRADE_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return "F"


def calculate_grade(points: float, total_points: float) -> tuple[float, str | None]:
    """
    Returns (percentage, letter). A non-positive total yields (0, None).

    The letter comes from the unrounded ratio; only the returned percentage
    is rounded to two decimals.
    """
    if not total_points or total_points <= 0:
        return 0.0, None
    raw = points / total_points * 100
    return round(raw, 2), letter_grade(raw)


def _reject_duplicates(keys, label: str) -> None:
    seen = set()
    for key in keys:
        if key in seen:
            raise ValidationFailed(f"Duplicate answer for {label} {key}")
        seen.add(key)


def score_assignment_answers(questions, answers) -> tuple[list[dict], float]:
    """
    Compare answers against questions that carry a direct `correct_answer`.

    answers: iterable of (question_id, answer) pairs. Unknown question ids
    are kept with zero points and is_correct False.
    """
    answers = list(answers)
    _reject_duplicates((question_id for question_id, _ in answers), "question")

    by_id = {q.id: q for q in questions}
    processed: list[dict] = []
    total = 0.0
    for question_id, answer in answers:
        q = by_id.get(question_id)
        is_correct = q is not None and q.correct_answer is not None and answer == q.correct_answer
        earned = float(q.points) if is_correct else 0.0
        total += earned
        processed.append(
            {
                "question_id": question_id,
                "answer": answer,
                "is_correct": is_correct,
                "points_earned": earned,
            }
        )
    return processed, total


def correct_option_text(question: dict) -> str | None:
    for option in question.get("options") or []:
        if option.get("is_correct"):
            return option.get("text")
    return None


def score_dpp_answers(questions: list[dict], answers) -> float:
    """
    Score DPP answers where correctness lives on `options[].is_correct`.

    answers: iterable of (question_index, selected_option). Out-of-range
    indexes score nothing; each correct answer adds the question's marks
    (1 when unset).
    """
    answers = list(answers)
    _reject_duplicates((index for index, _ in answers), "question index")

    score = 0.0
    for index, selected in answers:
        if index < 0 or index >= len(questions):
            continue
        question = questions[index]
        correct = correct_option_text(question)
        if correct is not None and selected == correct:
            score += question.get("marks") or 1
    return score


def score_quiz_answer(question: dict, selected_options: list[str]) -> tuple[bool, float]:
    """
    All-or-nothing: the selected option texts must be exactly the set of
    correct ones. Returns (is_correct, points_earned).
    """
    correct = {o.get("text") for o in question.get("options") or [] if o.get("is_correct")}
    is_correct = bool(correct) and set(selected_options) == correct
    points = question.get("points")
    if points is None:
        points = 1
    return is_correct, float(points) if is_correct else 0.0


def strip_correct_flags(questions: list[dict]) -> list[dict]:
    stripped = []
    for q in questions:
        copy = dict(q)
        copy["options"] = [{"text": o.get("text"), "is_correct": False} for o in q.get("options") or []]
        copy.pop("explanation", None)
        stripped.append(copy)
    return stripped
