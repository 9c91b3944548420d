from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


BackgroundType = Literal["certificate", "marksheet", "subcenter"]
TemplateType = Literal["certificate", "marksheet"]


class BackgroundOut(BaseModel):
    id: str
    name: str
    type: BackgroundType
    image_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    is_active: bool = False
    created_at: Optional[datetime] = None


class Position(BaseModel):
    top: float
    left: float


class PhotoSize(BaseModel):
    width: float = Field(90, gt=0)
    height: float = Field(120, gt=0)


class FontStyle(BaseModel):
    font_size: str = "16px"
    font_weight: str = "normal"
    font_style: str = "normal"
    color: str = "#000000"


class TemplatePositions(BaseModel):
    student_name: Position
    course_name: Position
    percentage: Position
    grade: Position
    duration: Position
    date: Position
    photo: Position
    certificate_number: Position
    subjects: Optional[Position] = None


class TemplateStyles(BaseModel):
    student_name: FontStyle
    course_name: FontStyle
    percentage: FontStyle
    grade: FontStyle
    duration: FontStyle
    date: FontStyle
    certificate_number: FontStyle
    subjects: Optional[FontStyle] = None


class TemplateConfigIn(BaseModel):
    template_id: str
    type: TemplateType
    positions: TemplatePositions
    photo_size: PhotoSize = PhotoSize()
    styles: TemplateStyles


class TemplateConfigOut(TemplateConfigIn):
    id: Optional[str] = None


class CertificateSave(BaseModel):
    exam_application_id: str
    certificate_no: str = Field(..., pattern=r"^\d{8}$")


class CertificateRow(BaseModel):
    application_id: str
    student_id: str
    student_name: str
    course_name: Optional[str] = None
    paper_name: Optional[str] = None
    percentage: float
    grade: str
    certificate_no: str
    processing: bool = False


class CertificateView(BaseModel):
    application_id: str
    student_name: str
    student_id: str
    course_name: str
    duration: str
    percentage: float
    percentage_text: str
    grade: str
    issue_date: str
    certificate_no: str
    certificate_no_is_temp: bool
    photo_url: str
    template: Optional[BackgroundOut] = None
    config: TemplateConfigOut
    layout: Dict[str, Dict[str, str]]
    auto_print_delay_ms: Optional[int] = None


class MarksheetSubject(BaseModel):
    subject_id: str
    name: str
    code: Optional[str] = None
    theory_marks: float = 0
    max_theory_marks: float
    practical_marks: float = 0
    max_practical_marks: float
    total: float
    max_total: float


class MarksheetView(BaseModel):
    application_id: str
    student_name: str
    student_id: str
    father_name: Optional[str] = None
    course_name: str
    duration: str
    subjects: List[MarksheetSubject]
    total_marks: float
    max_marks: float
    percentage: float
    percentage_text: str
    grade: str
    issue_date: str
    certificate_no: str
    certificate_no_is_temp: bool
    photo_url: str
    template: Optional[BackgroundOut] = None
    config: TemplateConfigOut
    layout: Dict[str, Dict[str, str]]
    auto_print_delay_ms: Optional[int] = None
