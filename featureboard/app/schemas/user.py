from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    username: str | None = Field(default=None, max_length=64)
    country: str | None = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    image: str | None = None
    username: str | None = None
    country: str | None = None
    created_at: str
    updated_at: str
