import io
import logging
import os
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from PIL import Image, ImageDraw, ImageFont
from pymongo.database import Database

from .. import config
from ..database import utcnow
from ..schemas.certificates import FontStyle, MarksheetSubject, TemplateConfigOut
from .identifiers import generate_certificate_number, generate_unique, temp_certificate_number

logger = logging.getLogger(__name__)

MONTHS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]
AUTO_PRINT_DELAY_MS = 1500
NUMBERS_PER_REQUEST = 5
DOWNLOAD_UNAVAILABLE = (
    "Certificate viewing feature is currently unavailable. Please contact administrator."
)
CENTERED_FIELDS = ("student_name", "course_name")
TEXT_FIELDS = (
    "student_name",
    "course_name",
    "percentage",
    "grade",
    "duration",
    "date",
    "certificate_number",
)
PREVIEW_SIZE = (1123, 794)


def _style(size: str, weight: str = "normal") -> dict:
    return {"font_size": size, "font_weight": weight, "font_style": "normal", "color": "#000000"}


DEFAULT_POSITIONS = {
    "student_name": {"top": 51, "left": 0},
    "course_name": {"top": 60, "left": 0},
    "percentage": {"top": 55, "left": 30},
    "grade": {"top": 55, "left": 0},
    "duration": {"top": 66.5, "left": 0},
    "date": {"top": 76, "left": 0},
    "photo": {"top": 23, "left": 11},
    "certificate_number": {"top": 85, "left": 10},
}
DEFAULT_STYLES = {
    "student_name": _style("20px", "bold"),
    "course_name": _style("18px", "bold"),
    "percentage": _style("16px"),
    "grade": _style("16px"),
    "duration": _style("16px"),
    "date": _style("16px"),
    "certificate_number": _style("14px"),
}
DEFAULT_PHOTO_SIZE = {"width": 90, "height": 120}

MARKSHEET_POSITIONS = {
    "student_name": {"top": 30, "left": 0},
    "course_name": {"top": 36, "left": 0},
    "percentage": {"top": 70, "left": 30},
    "grade": {"top": 70, "left": 0},
    "duration": {"top": 42, "left": 0},
    "date": {"top": 76, "left": 0},
    "photo": {"top": 23, "left": 11},
    "certificate_number": {"top": 24, "left": 10},
    "subjects": {"top": 50, "left": 0},
}
MARKSHEET_STYLES = {**DEFAULT_STYLES, "subjects": _style("16px")}


def default_template_config(template_id: str = "default", type_: str = "certificate") -> TemplateConfigOut:
    marksheet = type_ == "marksheet"
    return TemplateConfigOut(
        template_id=template_id,
        type=type_,
        positions=MARKSHEET_POSITIONS if marksheet else DEFAULT_POSITIONS,
        photo_size=DEFAULT_PHOTO_SIZE,
        styles=MARKSHEET_STYLES if marksheet else DEFAULT_STYLES,
    )


def template_config_from_doc(doc: Mapping) -> TemplateConfigOut:
    return TemplateConfigOut(
        id=str(doc["_id"]),
        template_id=doc["template_id"],
        type=doc["type"],
        positions=doc["positions"],
        photo_size=doc.get("photo_size") or DEFAULT_PHOTO_SIZE,
        styles=doc["styles"],
    )


def format_issue_date(when: Optional[datetime] = None) -> str:
    when = when or utcnow()
    return f"{when.day} {MONTHS[when.month - 1]} {when.year}"


def _pct(value: float) -> str:
    return f"{value:g}%"


def overlay_layout(template_config: TemplateConfigOut) -> Dict[str, Dict[str, str]]:
    """Absolute-position style records for each field drawn over the template.

    Name, course and the marksheet subjects table are always centred
    horizontally; the photo is anchored from the right edge using the
    configured ``left`` value.
    """
    positions = template_config.positions
    styles = template_config.styles
    layout: Dict[str, Dict[str, str]] = {}
    fields = TEXT_FIELDS + (("subjects",) if positions.subjects is not None else ())
    for field in fields:
        position = getattr(positions, field)
        style = getattr(styles, field) or FontStyle()
        record = {"top": _pct(position.top)}
        if field in CENTERED_FIELDS or field == "subjects":
            record["left"] = "50%"
            record["transform"] = "translateX(-50%)"
        else:
            record["left"] = _pct(position.left)
        record.update(
            {
                "fontSize": style.font_size,
                "fontWeight": style.font_weight,
                "fontStyle": style.font_style,
                "color": style.color,
            }
        )
        layout[field] = record
    photo = positions.photo
    size = template_config.photo_size
    layout["photo"] = {
        "top": _pct(photo.top),
        "right": _pct(photo.left),
        "width": f"{size.width:g}px",
        "height": f"{size.height:g}px",
    }
    return layout


def active_template(db: Database, type_: str = "certificate") -> Optional[dict]:
    return db["backgrounds"].find_one({"type": type_, "is_active": True})


def load_template_config(db: Database, template: Optional[Mapping], type_: str = "certificate") -> TemplateConfigOut:
    if template is not None:
        doc = db["template_configs"].find_one({"template_id": str(template["_id"]), "type": type_})
        if doc is not None:
            return template_config_from_doc(doc)
    return default_template_config(str(template["_id"]) if template else "default", type_)


def certificate_number_for(application: Mapping) -> tuple[str, bool]:
    """(number, is_temp) for display."""
    if application.get("certificate_no"):
        return application["certificate_no"], False
    return temp_certificate_number(str(application["_id"])), True


def is_certificate_eligible(application: Mapping, student: Optional[Mapping]) -> bool:
    return (
        (application.get("paper_type") or "").lower() == "offline"
        and application.get("status") == "approved"
        and (application.get("percentage") or 0) > 0
        and student is not None
        and bool(student.get("name"))
    )


def marksheet_subjects(subjects: Iterable[Mapping], subject_marks: Mapping[str, Mapping]) -> List[MarksheetSubject]:
    """One row per course subject, in course order; unmarked subjects read as zero."""
    rows = []
    for subject in subjects:
        entry = subject_marks.get(str(subject["_id"])) or {}
        theory = float(entry.get("theory_marks") or 0)
        practical = float(entry.get("practical_marks") or 0)
        max_theory = float(subject["total_marks"])
        max_practical = float(subject["total_practical_marks"])
        rows.append(
            MarksheetSubject(
                subject_id=str(subject["_id"]),
                name=subject.get("name") or "",
                code=subject.get("code"),
                theory_marks=theory,
                max_theory_marks=max_theory,
                practical_marks=practical,
                max_practical_marks=max_practical,
                total=theory + practical,
                max_total=max_theory + max_practical,
            )
        )
    return rows


def assign_missing_numbers(db: Database, applications: Iterable[dict], limit: int = NUMBERS_PER_REQUEST) -> List[str]:
    """Persist certificate numbers for up to ``limit`` unnumbered applications.

    The update only matches while ``certificate_no`` is still unset, so two
    concurrent listings never number the same application twice.
    """
    assigned = []
    for application in applications:
        if len(assigned) >= limit:
            break
        if application.get("certificate_no"):
            continue
        number = generate_unique(db, "exam_applications", "certificate_no", generate_certificate_number)
        result = db["exam_applications"].update_one(
            {"_id": application["_id"], "certificate_no": None},
            {"$set": {"certificate_no": number, "updated_at": utcnow()}},
        )
        if result.modified_count:
            application["certificate_no"] = number
            assigned.append(str(application["_id"]))
            logger.info("Assigned certificate %s to application %s", number, application["_id"])
    return assigned


def _template_path(template: Optional[Mapping]) -> Optional[str]:
    if not template:
        return None
    url = template.get("image_url") or ""
    prefix = config.UPLOAD_URL_PREFIX.rstrip("/") + "/"
    if not url.startswith(prefix):
        return None
    path = os.path.join(config.UPLOAD_DIR, url[len(prefix):])
    return path if os.path.isfile(path) else None


def _font(size: str):
    try:
        pixels = int(float(size.rstrip("px")))
    except ValueError:
        pixels = 16
    return ImageFont.load_default(size=pixels)


SAMPLE_VALUES = {
    "student_name": "STUDENT NAME",
    "course_name": "COURSE NAME",
    "percentage": "85.00%",
    "grade": "A",
    "duration": "6 Months",
    "certificate_number": "12345678",
}


def render_preview(template: Optional[Mapping], template_config: TemplateConfigOut, values: Optional[dict] = None) -> bytes:
    """Draw sample text over the template image and return PNG bytes."""
    values = {**SAMPLE_VALUES, "date": format_issue_date(), **(values or {})}
    path = _template_path(template)
    if path:
        with Image.open(path) as source:
            canvas = source.convert("RGB")
    else:
        canvas = Image.new("RGB", PREVIEW_SIZE, "white")
    width, height = canvas.size
    draw = ImageDraw.Draw(canvas)

    for field in TEXT_FIELDS:
        position = getattr(template_config.positions, field)
        style = getattr(template_config.styles, field)
        font = _font(style.font_size)
        text = values.get(field, "")
        y = position.top / 100 * height
        if field in CENTERED_FIELDS:
            x = (width - draw.textlength(text, font=font)) / 2
        else:
            x = position.left / 100 * width
        draw.text((x, y), text, fill=style.color, font=font)

    photo = template_config.positions.photo
    size = template_config.photo_size
    right = width - photo.left / 100 * width
    top = photo.top / 100 * height
    draw.rectangle((right - size.width, top, right, top + size.height), outline="#888888", width=2)

    buffer = io.BytesIO()
    canvas.save(buffer, format="PNG")
    return buffer.getvalue()
