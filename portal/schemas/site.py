from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from .catalog import CourseOut


class CmsItem(BaseModel):
    section: str = ""
    key: str = ""
    value: str = ""


class CmsItemOut(CmsItem):
    id: str
    updated_at: Optional[datetime] = None


class CmsBatch(BaseModel):
    items: List[CmsItem]


class GlobalSettings(BaseModel):
    logo: str = ""
    favicon: str = ""
    websiteName: str = "Krishna Computers"
    mobile: str = "9001203861, 9772225669"
    email: str = "krishna.computers.official2008@gmail.com"
    youtubeLink: str = ""
    facebookLink: str = ""
    instagramLink: str = ""
    twitterLink: str = ""


EnquiryStatus = Literal["New", "Contacted", "Enrolled", "Rejected"]


class StudentEnquiryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    father_name: str = Field(..., min_length=1)
    mother_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=15)
    address: str = Field(..., min_length=1)
    gender: Literal["Male", "Female", "Other"]
    date_of_birth: str
    education: str = Field(..., min_length=1)
    course: str
    message: Optional[str] = None
    preferred_time: Optional[Literal["Morning", "Afternoon", "Evening", "Weekend"]] = None


class StudentEnquiryOut(StudentEnquiryCreate):
    id: str
    application_id: str
    course_name: Optional[str] = None
    status: EnquiryStatus = "New"
    created_at: Optional[datetime] = None


class EnquiryStatusUpdate(BaseModel):
    status: EnquiryStatus


class ContactEnquiryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)


class ContactEnquiryOut(ContactEnquiryCreate):
    id: str
    created_at: Optional[datetime] = None


class HomePage(BaseModel):
    settings: GlobalSettings
    home: List[CmsItemOut] = []
    courses: List[CourseOut] = []


class ActivityOut(BaseModel):
    id: str
    activity: str
    type: str = "other"
    entity_id: Optional[str] = None
    entity_model: Optional[str] = None
    center_id: Optional[str] = None
    created_at: Optional[datetime] = None


class DashboardOut(BaseModel):
    role: str
    counts: Dict[str, int]
    recent_activities: List[ActivityOut] = []


class SliderSave(BaseModel):
    slider_id: str = Field(..., pattern=r"^\d+$")
    fields: Dict[str, str]


GalleryItemType = Literal["image", "video"]
GalleryCategory = Literal["campus", "classrooms", "events", "students"]


class GalleryItemIn(BaseModel):
    item_type: GalleryItemType
    title: str = Field(..., min_length=1)
    description: str = ""
    category: GalleryCategory
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: str = ""
    is_active: bool = True
    order: int = 0


class GalleryItemUpdate(BaseModel):
    item_type: Optional[GalleryItemType] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[GalleryCategory] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_active: Optional[bool] = None
    order: Optional[int] = None


class GalleryItemOut(GalleryItemIn):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LegalDocumentOut(BaseModel):
    id: str
    title: str
    description: str = ""
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    image_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class TeamMemberIn(BaseModel):
    name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)


class TeamMemberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    position: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = Field(None, min_length=1)
    order: Optional[int] = None


class TeamMemberOut(TeamMemberIn):
    id: str
    order: int = 0
    created_at: Optional[datetime] = None
