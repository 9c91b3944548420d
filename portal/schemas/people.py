from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


StudentStatus = Literal["Active", "Inactive", "Completed", "Dropped"]


class StudentFields(BaseModel):
    name: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    course: Optional[str] = None
    center_id: Optional[str] = None
    photo_url: Optional[str] = None
    id_card_url: Optional[str] = None
    signature_url: Optional[str] = None
    course_fee: float = 0
    admission_fee: float = 0
    exam_fee: float = 0
    discount: float = 0
    total_fee: float = 0
    payable_amount: float = 0


class StudentCreate(StudentFields):
    status: StudentStatus = "Active"


class StudentUpdate(BaseModel):
    name: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    course: Optional[str] = None
    photo_url: Optional[str] = None
    id_card_url: Optional[str] = None
    signature_url: Optional[str] = None
    course_fee: Optional[float] = None
    admission_fee: Optional[float] = None
    exam_fee: Optional[float] = None
    discount: Optional[float] = None
    total_fee: Optional[float] = None
    payable_amount: Optional[float] = None
    status: Optional[StudentStatus] = None


class StudentOut(StudentFields):
    id: str
    student_id: str
    course_name: Optional[str] = None
    status: str = "Active"
    created_at: Optional[datetime] = None


class SubcenterCreate(BaseModel):
    name: str
    owner_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    owner_image_url: Optional[str] = None
    photo_id_url: Optional[str] = None


class SubcenterUpdate(BaseModel):
    name: Optional[str] = None
    owner_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    owner_image_url: Optional[str] = None
    photo_id_url: Optional[str] = None


class SubcenterStatusUpdate(BaseModel):
    is_active: bool


class SubcenterOut(SubcenterCreate):
    id: str
    center_id: str
    is_active: bool = True
    created_at: Optional[datetime] = None


class Registration(BaseModel):
    """Creation response; ``password`` is the only time the plaintext leaves the server."""

    id: str
    login_id: str
    password: str


class StudentRegistration(Registration):
    student: StudentOut


class SubcenterRegistration(Registration):
    subcenter: SubcenterOut


CredentialType = Literal["student", "subcenter"]


class CredentialOut(BaseModel):
    id: str
    type: CredentialType
    user_id: str
    name: str
    email: str = ""
    password: str


class CredentialList(BaseModel):
    items: List[CredentialOut]
    from_cache: bool = False


class PasswordReset(BaseModel):
    id: str
    type: CredentialType
    user_id: str
    password: str
