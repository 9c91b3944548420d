import pytest
from fastapi import HTTPException

from portal.services.courses import (
    course_image_url,
    is_typing_course,
    placeholder_image_url,
    validate_subject_count,
)
from portal.services.exam_papers import prepare_subject_rows, recompute_theoretical_marks


@pytest.mark.parametrize(
    "course, expected",
    [
        ({"code": "TYP-HINDI", "name": "Hindi"}, True),
        ({"code": "ENG", "name": "English Typing"}, True),
        ({"code": "DCA", "name": "Diploma"}, False),
    ],
)
def test_is_typing_course(course, expected):
    assert is_typing_course(course) is expected


def test_typing_course_accepts_up_to_three_subjects():
    course = {"code": "TYPING", "name": "Typing"}
    validate_subject_count(course, ["a", "b", "c"])
    with pytest.raises(HTTPException) as exc:
        validate_subject_count(course, ["a", "b", "c", "d"])
    assert exc.value.status_code == 400
    assert "at most 3" in exc.value.detail


def test_regular_course_accepts_up_to_eight_subjects():
    course = {"code": "DCA", "name": "Diploma"}
    validate_subject_count(course, [str(i) for i in range(8)])
    with pytest.raises(HTTPException):
        validate_subject_count(course, [str(i) for i in range(9)])


def test_course_needs_a_subject():
    with pytest.raises(HTTPException):
        validate_subject_count({"code": "DCA"}, [])


def test_placeholder_colour_follows_first_letter():
    # ord("D") % 10 == 8
    assert placeholder_image_url("DCA") == "/placeholder.svg?text=DCA&width=600&height=400&bg=yellow"
    assert course_image_url({"code": "DCA", "image_url": "/uploads/x.png"}) == "/uploads/x.png"
    assert course_image_url({"code": "ADCA"}).endswith("bg=pink")


def test_theoretical_marks_end_to_end():
    rows = [
        {"subject_id": "s1", "subject_name": "Office", "number_of_questions": 10},
        {"subject_id": "s2", "subject_name": "Internet", "number_of_questions": 10},
    ]
    prepared = prepare_subject_rows(rows, 2)
    assert [r["theoretical_marks"] for r in prepared] == [20, 20]


def test_recompute_keeps_manual_value_without_both_inputs():
    rows = [
        {"subject_id": "s1", "number_of_questions": 5, "theoretical_marks": 99},
        {"subject_id": "s2", "number_of_questions": None, "theoretical_marks": 40},
    ]
    recompute_theoretical_marks(rows, 3)
    assert rows[0]["theoretical_marks"] == 15
    assert rows[1]["theoretical_marks"] == 40


def test_prepare_drops_incomplete_rows_and_keeps_explicit_marks():
    rows = [
        {"subject_id": "s1", "subject_name": "Office", "number_of_questions": 10, "theoretical_marks": 35},
        {"subject_id": "", "subject_name": "Blank"},
        {"subject_id": "s3", "subject_name": None},
    ]
    prepared = prepare_subject_rows(rows, 2)
    assert len(prepared) == 1
    assert prepared[0]["theoretical_marks"] == 35
