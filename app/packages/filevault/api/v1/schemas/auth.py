"""认证相关的请求与响应模型。"""

from typing import Literal

from pydantic import BaseModel, Field

from app.packages.filevault.api.v1.schemas.common import ResponseEnvelope


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)


class RegisterResponseData(BaseModel):
    user_id: int
    email: str


class TokenResponseData(BaseModel):
    access_token: str
    token_type: Literal["bearer"]


RegisterResponse = ResponseEnvelope[RegisterResponseData]
TokenResponse = ResponseEnvelope[TokenResponseData]
