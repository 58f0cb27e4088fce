from fastapi_users import schemas


class UserRead(schemas.BaseUser):
    full_name: str | None = None
    avatar_url: str | None = None
    blood_type: str | None = None
    seasonal_allergies: str | None = None
    medications: str | None = None


class UserCreate(schemas.BaseUserCreate):
    full_name: str | None = None
    avatar_url: str | None = None
    blood_type: str | None = None
    seasonal_allergies: str | None = None
    medications: str | None = None


class UserUpdate(schemas.BaseUserUpdate):
    full_name: str | None = None
    avatar_url: str | None = None
    blood_type: str | None = None
    seasonal_allergies: str | None = None
    medications: str | None = None
