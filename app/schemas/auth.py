from typing import Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: Optional[UserOut] = None


class OAuthRedirect(BaseModel):
    url: str
    code_verifier: str
