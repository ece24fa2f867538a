from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.user import Role


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    role: Role = Role.STUDENT
    student_code: str | None = None
    teacher_code: str | None = None
    department: str | None = None
    phone: str | None = None


class UserRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: Role
    student_code: str | None = None
    teacher_code: str | None = None
    department: str | None = None
    phone: str | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: Role

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    department: str | None = None
    phone: str | None = None
