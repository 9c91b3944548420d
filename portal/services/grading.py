from typing import Iterable, Mapping

GRADE_STEPS = [
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C"),
]


def calculate_grade(percentage: float) -> str:
    for threshold, grade in GRADE_STEPS:
        if percentage >= threshold:
            return grade
    return "D"


def subject_marks_total(subject_marks: Mapping[str, Mapping[str, float]]) -> float:
    total = 0.0
    for marks in subject_marks.values():
        total += float(marks.get("theory_marks") or 0)
        total += float(marks.get("practical_marks") or 0)
    return total


def max_marks_total(subjects: Iterable[Mapping]) -> float:
    return float(
        sum(
            (s.get("total_marks") or 0) + (s.get("total_practical_marks") or 0)
            for s in subjects
        )
    )


def offline_percentage(subject_marks: Mapping[str, Mapping[str, float]], subjects: Iterable[Mapping]) -> float:
    """Obtained over the subjects' theory+practical maximum, two decimals."""
    maximum = max_marks_total(subjects)
    if maximum == 0:
        return 0.0
    return round(subject_marks_total(subject_marks) / maximum * 100, 2)


def score_online_answers(
    questions: Iterable[Mapping],
    answers: Mapping[str, str],
    marks_per_question: float,
    negative_marks: float = 0.0,
) -> tuple[float, float, float]:
    """Return (score, possible, percentage) for a submitted online paper.

    A question counts when the stored answer equals its correct option.
    Wrong answers lose ``negative_marks``; unanswered ones cost nothing.
    """
    score = 0.0
    possible = 0.0
    for question in questions:
        possible += marks_per_question
        given = answers.get(str(question["_id"]))
        if not given:
            continue
        if given == question.get("correct_option", "A"):
            score += marks_per_question
        else:
            score -= negative_marks
    score = max(score, 0.0)
    percentage = round(score / possible * 100, 2) if possible else 0.0
    return score, possible, percentage
