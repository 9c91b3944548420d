from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SubjectBase(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    total_marks: int = Field(100, ge=0)
    total_practical_marks: int = Field(50, ge=0)
    is_active: bool = True


class SubjectCreate(SubjectBase):
    pass


class SubjectUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    total_marks: Optional[int] = Field(None, ge=0)
    total_practical_marks: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class SubjectOut(SubjectBase):
    id: str
    courses: List[str] = []


class CourseBase(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    duration: Optional[str] = None
    fee: float = 0
    image_url: Optional[str] = None
    is_active: bool = True


class CourseCreate(CourseBase):
    subjects: List[str] = []


class CourseUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    fee: Optional[float] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class CourseSubjectsUpdate(BaseModel):
    subjects: List[str]


class CourseOut(CourseBase):
    id: str
    image_url: str
    subjects: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseDetailOut(CourseOut):
    subject_details: List[SubjectOut] = []
