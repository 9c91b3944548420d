from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .catalog import CourseOut, SubjectOut
from .people import StudentOut


PaperStatus = Literal["active", "inactive"]
ApplicationStatus = Literal["scheduled", "approved", "completed", "cancelled"]
OptionLetter = Literal["A", "B", "C", "D"]


class PaperSubject(BaseModel):
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    number_of_questions: Optional[int] = Field(None, ge=0)
    is_individual: bool = False
    passing_marks: Optional[float] = None
    theoretical_marks: Optional[float] = None
    practical_marks: Optional[float] = None


class ExamPaperBase(BaseModel):
    paper_name: str
    paper_type: str = "online"
    exam_type: str = "Main"
    total_questions: int = Field(0, ge=0)
    correct_marks_per_question: float = Field(1, ge=0)
    passing_marks: float = 0
    time: int = Field(60, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    re_attempt: int = 0
    re_attempt_time: int = 0
    is_negative_mark: bool = False
    negative_marks: float = Field(0, ge=0)
    positive_marks: float = 0
    course_type: Optional[str] = None
    course: Optional[str] = None


class ExamPaperCreate(ExamPaperBase):
    subjects: List[PaperSubject] = []


class ExamPaperUpdate(BaseModel):
    paper_name: Optional[str] = None
    paper_type: Optional[str] = None
    exam_type: Optional[str] = None
    total_questions: Optional[int] = Field(None, ge=0)
    correct_marks_per_question: Optional[float] = Field(None, ge=0)
    passing_marks: Optional[float] = None
    time: Optional[int] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    re_attempt: Optional[int] = None
    re_attempt_time: Optional[int] = None
    is_negative_mark: Optional[bool] = None
    negative_marks: Optional[float] = Field(None, ge=0)
    positive_marks: Optional[float] = None
    course_type: Optional[str] = None
    course: Optional[str] = None
    subjects: Optional[List[PaperSubject]] = None


class ExamPaperStatusUpdate(BaseModel):
    status: PaperStatus


class ExamPaperOut(ExamPaperBase):
    id: str
    paper_id: str
    status: PaperStatus
    subjects: List[PaperSubject] = []
    questions_uploaded: bool = False
    created_at: Optional[datetime] = None


class QuestionBase(BaseModel):
    paper_id: str
    subject_id: str
    subject_name: Optional[str] = None
    question_text: str = ""
    option_a: str = ""
    option_b: str = ""
    option_c: str = ""
    option_d: str = ""


class QuestionCreate(QuestionBase):
    correct_option: OptionLetter = "A"


class QuestionBatch(BaseModel):
    questions: List[QuestionCreate]


class QuestionOut(QuestionBase):
    id: str
    correct_option: Optional[OptionLetter] = None


class ApplicationCreate(BaseModel):
    exam_paper_id: Optional[str] = None
    student_ids: List[str] = []
    scheduled_time: Optional[datetime] = None
    paper_type: Optional[str] = None


class SubjectMarks(BaseModel):
    theory_marks: float = Field(0, ge=0)
    practical_marks: float = Field(0, ge=0)


class ApplicationUpdate(BaseModel):
    status: Optional[ApplicationStatus] = None
    score: Optional[float] = None
    percentage: Optional[float] = Field(None, ge=0, le=100)
    certificate_no: Optional[str] = None
    subject_marks: Optional[Dict[str, SubjectMarks]] = None


class MarksUpdate(BaseModel):
    subject_marks: Dict[str, SubjectMarks]


class ApplicationOut(BaseModel):
    id: str
    exam_paper_id: str
    student_id: str
    student_name: Optional[str] = None
    student_id_number: Optional[str] = None
    center_id: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    paper_type: str
    status: str
    score: Optional[float] = None
    percentage: Optional[float] = None
    certificate_no: Optional[str] = None
    subject_marks: Dict[str, SubjectMarks] = {}
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ApplicationBatchResult(BaseModel):
    count: int
    skipped: List[str] = []
    applications: List[ApplicationOut] = []


class OfflineMarksRow(ApplicationOut):
    photo_url: str
    paper_name: Optional[str] = None
    course_name: Optional[str] = None
    result_label: str
    action_label: str


class AnswersUpdate(BaseModel):
    answers: Dict[str, OptionLetter]


class ExamSessionOut(BaseModel):
    application_id: str
    state: Literal["not-started", "started", "submitted", "error"]
    paper_name: Optional[str] = None
    time_minutes: Optional[int] = None
    remaining_seconds: Optional[int] = None
    questions: List[QuestionOut] = []
    answers: Dict[str, str] = {}
    score: Optional[float] = None
    percentage: Optional[float] = None
    error: Optional[str] = None


class ApplicationDetail(ApplicationOut):
    student: Optional[StudentOut] = None
    exam_paper: Optional[ExamPaperOut] = None
    course: Optional[CourseOut] = None
    subjects: List[SubjectOut] = []


class ApplicationStats(BaseModel):
    total_offline: int
    offline_scheduled: int
    offline_approved: int
    offline_with_marks: int
    online_completed: int
