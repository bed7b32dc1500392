from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class AdminLoginRequest(BaseModel):
    # Optional so missing fields are reported with per-field details (E009, 400).
    email: Optional[str] = None
    password: Optional[str] = None


class OtpVerifyRequest(BaseModel):
    otp: Optional[str] = None


class OtpStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    challenge_id: str
    masked_identity: str
    otp_expires_in_seconds: int
    remaining_attempts: int
    max_attempts: int
    lockout_remaining_seconds: int
    resend_available_in_seconds: int
    status: str


class OtpStatusResponse(OtpStatus):
    otp_required: bool = True


class AdminPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    roles: List[str]


class AdminSession(BaseModel):
    access_token_expires_in_seconds: int


class AdminLoginResponse(BaseModel):
    otp_required: bool = True
    otp: OtpStatus


class AdminVerifyResponse(BaseModel):
    admin: AdminPublic
    session: AdminSession


class AdminSessionResponse(BaseModel):
    authenticated: bool = True
    admin: AdminPublic
    session: AdminSession


class AdminMessageResponse(BaseModel):
    message: str
