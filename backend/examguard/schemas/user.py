from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class User(UserBase):
    id: int
    role: str

    class Config:
        from_attributes = True
