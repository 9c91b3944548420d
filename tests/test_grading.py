import pytest
from bson import ObjectId

from portal.services.grading import (
    calculate_grade,
    offline_percentage,
    score_online_answers,
    subject_marks_total,
)


@pytest.mark.parametrize(
    "percentage, grade",
    [
        (100, "A+"),
        (90, "A+"),
        (89.99, "A"),
        (80, "A"),
        (79.5, "B+"),
        (70, "B+"),
        (60, "B"),
        (59.99, "C"),
        (50, "C"),
        (49.99, "D"),
        (0, "D"),
    ],
)
def test_calculate_grade_boundaries(percentage, grade):
    assert calculate_grade(percentage) == grade


def test_offline_percentage_uses_theory_and_practical_maximum():
    subjects = [
        {"_id": "s1", "total_marks": 100, "total_practical_marks": 50},
        {"_id": "s2", "total_marks": 100, "total_practical_marks": 50},
    ]
    marks = {
        "s1": {"theory_marks": 80, "practical_marks": 40},
        "s2": {"theory_marks": 70, "practical_marks": 35},
    }
    assert subject_marks_total(marks) == 225
    assert offline_percentage(marks, subjects) == 75.0


def test_offline_percentage_rounds_to_two_places():
    subjects = [{"total_marks": 100, "total_practical_marks": 50}] * 3
    marks = {"a": {"theory_marks": 100, "practical_marks": 0}}
    assert offline_percentage(marks, subjects) == 22.22


def test_offline_percentage_without_subjects_is_zero():
    assert offline_percentage({"a": {"theory_marks": 5}}, []) == 0.0


def _questions(*correct):
    return [{"_id": ObjectId(), "correct_option": c} for c in correct]


def test_score_counts_matching_answers():
    questions = _questions("A", "B", "C", "D")
    answers = {str(questions[0]["_id"]): "A", str(questions[1]["_id"]): "B"}
    score, possible, percentage = score_online_answers(questions, answers, 2)
    assert (score, possible, percentage) == (4, 8, 50.0)


def test_negative_marking_never_goes_below_zero():
    questions = _questions("A", "A")
    answers = {str(q["_id"]): "B" for q in questions}
    score, _, percentage = score_online_answers(questions, answers, 1, negative_marks=0.5)
    assert score == 0
    assert percentage == 0


def test_unanswered_questions_cost_nothing():
    questions = _questions("A", "A", "A")
    answers = {str(questions[0]["_id"]): "A", str(questions[1]["_id"]): "C"}
    score, possible, _ = score_online_answers(questions, answers, 1, negative_marks=0.25)
    assert score == 0.75
    assert possible == 3
