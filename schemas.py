"""
Database Schemas for the Portfolio CMS

Each Pydantic model = one MongoDB collection (lowercased class name), except
the embedded models (SocialLink, Skill, ProjectDetail parts) which live inside
their parent document. Unknown fields are rejected.
"""

import re
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, field_validator

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def as_utc(value: datetime) -> datetime:
    # naive input is taken to be UTC, as Mongo stores it
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# Auth
class Admin(Strict):
    email: str
    password_hash: str
    name: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(Strict):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AdminSummary(BaseModel):
    id: str
    email: str
    name: str


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: AdminSummary


# About (singleton)
class SocialLink(Strict):
    type: Literal["github", "linkedin", "twitter", "email", "website"]
    label: str
    url: str


class AboutSection(Strict):
    name: RequiredStr
    headline: RequiredStr
    short_summary: RequiredStr
    long_description: RequiredStr
    location: RequiredStr
    years_of_experience: int = Field(0, ge=0)
    profile_photo_url: str = ""
    resume_file_url: str = ""
    social_links: List[SocialLink] = Field(default_factory=list)


# Skills
class Skill(Strict):
    id: str = Field(default_factory=lambda: str(ObjectId()))
    label: RequiredStr
    level: Literal["Beginner", "Intermediate", "Advanced", "Expert"] = "Intermediate"
    icon: str = ""
    show_in_highlights: bool = False


class SkillCategory(Strict):
    name: RequiredStr
    order: int = 0
    skills: List[Skill] = Field(default_factory=list)


class SkillCategoryCreate(Strict):
    name: RequiredStr
    order: int = 0


class SkillCreate(Strict):
    label: RequiredStr
    level: Literal["Beginner", "Intermediate", "Advanced", "Expert"] = "Intermediate"
    icon: str = ""
    show_in_highlights: bool = False


# Projects
class ProjectSection(Strict):
    title: str
    content: str


class GalleryImage(Strict):
    url: str
    caption: Optional[str] = None


class ProjectDetail(Strict):
    markdown_content: str = ""
    sections: List[ProjectSection] = Field(default_factory=list)
    gallery_images: List[GalleryImage] = Field(default_factory=list)
    demo_video_url: Optional[str] = None


class Project(Strict):
    title: RequiredStr
    slug: str
    short_description: RequiredStr
    tech_stack: List[str] = Field(default_factory=list)
    role: RequiredStr
    project_type: Literal["personal", "freelance", "internship", "client work"] = "personal"
    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    is_ongoing: bool = False
    thumbnail_image_url: str = ""
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    is_featured: bool = False
    order: int = 0
    detail: Optional[ProjectDetail] = None

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not SLUG_RE.match(v):
            raise ValueError("slug must contain only lowercase letters, digits and single hyphens")
        return v


# Experience
class ExperienceEntry(Strict):
    company_name: RequiredStr
    role_title: RequiredStr
    employment_type: Literal["full-time", "part-time", "internship", "freelance"] = "full-time"
    location: RequiredStr
    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    is_current: bool = False
    description_bullets: List[str] = Field(default_factory=list)
    tech_used: List[str] = Field(default_factory=list)
    order: int = 0


# Contact form; missing, null and blank fields are all reported by the mailer
class ContactMessage(BaseModel):
    name: Optional[str] = ""
    email: Optional[str] = ""
    message: Optional[str] = ""


class UploadResult(BaseModel):
    url: str
    filename: str
    size: int
