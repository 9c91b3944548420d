import logging
from typing import Dict, List, Mapping, Optional, Tuple

from fastapi import HTTPException

from .. import config
from .grading import offline_percentage, subject_marks_total

logger = logging.getLogger(__name__)

DEFAULT_THEORY_MAX = 100
DEFAULT_PRACTICAL_MAX = 50


def result_labels(status: Optional[str], percentage: Optional[float]) -> Tuple[str, str]:
    """(result_label, action_label) shown on the offline marks list."""
    if percentage and percentage > 0:
        return f"Pass ({percentage:.2f}%)", "Edit Approved Marks"
    if status == "approved":
        return "Pending Marks", "Update Marks"
    return "Waiting Approval", "Approve & Enter Marks"


def fallback_image_url(kind: str, student_id: str, height: int = 400) -> str:
    return f"/placeholder.svg?width=400&height={height}&text={kind}-{student_id}"


def resolve_photo_url(photo: Optional[str], student_id: str = "") -> str:
    if not photo or not photo.strip():
        return fallback_image_url("PHOTO", student_id)
    photo = photo.strip()
    if photo.startswith(("http://", "https://", "data:", "/")):
        return photo
    return f"{config.UPLOAD_URL_PREFIX.rstrip('/')}/{photo}"


def normalize_subjects(subjects: List[Mapping]) -> List[dict]:
    """Subject docs with the theory/practical maxima defaulted."""
    normalized = []
    for subject in subjects:
        item = dict(subject)
        if item.get("total_marks") is None:
            item["total_marks"] = DEFAULT_THEORY_MAX
        if item.get("total_practical_marks") is None:
            item["total_practical_marks"] = DEFAULT_PRACTICAL_MAX
        normalized.append(item)
    return normalized


def validate_subject_marks(marks: Dict[str, dict], subjects: List[Mapping]) -> None:
    by_id = {str(s["_id"]): s for s in subjects}
    for subject_id, entry in marks.items():
        subject = by_id.get(subject_id)
        if subject is None:
            raise HTTPException(
                status_code=400, detail=f"Subject {subject_id} is not part of this course"
            )
        theory = entry.get("theory_marks") or 0
        practical = entry.get("practical_marks") or 0
        if theory < 0 or practical < 0:
            raise HTTPException(status_code=400, detail="Marks cannot be negative")
        if theory > subject["total_marks"]:
            raise HTTPException(
                status_code=400,
                detail=f"Theory marks for {subject.get('name')} exceed {subject['total_marks']}",
            )
        if practical > subject["total_practical_marks"]:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Practical marks for {subject.get('name')} exceed "
                    f"{subject['total_practical_marks']}"
                ),
            )


def marks_update(marks: Dict[str, dict], subjects: List[Mapping]) -> dict:
    """The ``$set`` document for a marks entry: score, percentage, status."""
    subjects = normalize_subjects(subjects)
    validate_subject_marks(marks, subjects)
    return {
        "subject_marks": marks,
        "score": subject_marks_total(marks),
        "percentage": offline_percentage(marks, subjects),
        "status": "approved",
    }
