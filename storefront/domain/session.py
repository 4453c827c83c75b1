"""
Authenticated session held by the client after sign-in
"""
from pydantic import BaseModel
from typing import Optional


class AuthSession(BaseModel):
    """User data and bearer token for user-scoped API calls"""
    user_id: str
    username: str
    email: Optional[str] = None
    access_token: str
