from typing import Mapping, Optional, Sequence

from fastapi import HTTPException

PLACEHOLDER_COLORS = [
    "blue",
    "green",
    "red",
    "orange",
    "purple",
    "pink",
    "teal",
    "indigo",
    "yellow",
    "cyan",
]

TYPING_MAX_SUBJECTS = 3
REGULAR_MAX_SUBJECTS = 8


def is_typing_course(course: Mapping) -> bool:
    code = (course.get("code") or "").lower()
    name = (course.get("name") or "").lower()
    return "typing" in code or "typing" in name


def max_subjects_for(course: Mapping) -> int:
    return TYPING_MAX_SUBJECTS if is_typing_course(course) else REGULAR_MAX_SUBJECTS


def validate_subject_count(course: Mapping, subject_ids: Sequence[str]) -> None:
    """Raise 400 unless the course may hold this many subjects."""
    limit = max_subjects_for(course)
    count = len(subject_ids)
    if count < 1:
        raise HTTPException(status_code=400, detail="A course needs at least one subject")
    if count > limit:
        kind = "Typing" if limit == TYPING_MAX_SUBJECTS else "Regular"
        raise HTTPException(
            status_code=400,
            detail=f"{kind} courses can have at most {limit} subjects (got {count})",
        )
    if len(set(subject_ids)) != count:
        raise HTTPException(status_code=400, detail="Duplicate subjects in course")


def placeholder_image_url(code: str) -> str:
    color = PLACEHOLDER_COLORS[ord(code[0]) % len(PLACEHOLDER_COLORS)] if code else "blue"
    return f"/placeholder.svg?text={code}&width=600&height=400&bg={color}"


def course_image_url(course: Mapping) -> str:
    image: Optional[str] = course.get("image_url")
    if image:
        return image
    return placeholder_image_url(course.get("code") or "")
