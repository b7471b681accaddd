"""
Wire models for the SCP authorization endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class AuthorizationInitRequest(BaseModel):
    """Body posted to ``<endpoint>/authorize/init``."""

    email: str
    client_id: str
    client_name: str
    domain: str
    scopes: List[str]
    code_challenge: str
    code_challenge_method: str
    redirect_uri: str
    state: str


class AuthorizationInitResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    auth_request_id: str
    email_sent: bool = False
    expires_in: Optional[int] = None
    poll_interval: Optional[float] = None


class PollResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    code: Optional[str] = None
    expires_in: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None


class TokenResponse(BaseModel):
    """Token quadruple returned by both the code and refresh grants."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: str = ""
    customer_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def granted_scopes(self) -> List[str]:
        return [scope for scope in self.scope.split(" ") if scope]


__all__ = [
    "AuthorizationInitRequest",
    "AuthorizationInitResponse",
    "PollResponse",
    "TokenResponse",
]
