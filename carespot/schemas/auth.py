from pydantic import BaseModel, Field

from carespot.schemas.user import UserResponse

class LoginRequest(BaseModel):
    email: str
    password: str

class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)

class MessageResponse(BaseModel):
    message: str
