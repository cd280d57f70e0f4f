# authcore/routers/auth_router.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..application.services.registration_service import RegistrationService
from ..application.services.session_service import IssuedSession, SessionService
from ..core.config import settings
from ..dependencies import get_registration_service, get_session_service
from ..exceptions import create_success_response
from ..schemas.auth import LoginRequest, VerifyOTPRequest, validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def set_auth_cookies(response: Response, session: IssuedSession) -> None:
    for name, token in ((ACCESS_COOKIE, session.access_token), (REFRESH_COOKIE, session.refresh_token)):
        response.set_cookie(
            name,
            token,
            max_age=settings.COOKIE_MAX_AGE_SECONDS,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
        )


@router.post("/register")
async def register(
    payload: Dict[str, Any] = Body(...),
    service: RegistrationService = Depends(get_registration_service),
):
    """Validate the sign-up payload and send a verification code to its identifier"""
    dispatch = await service.initiate(payload)
    return create_success_response("OTP sent successfully", {
        "identifier": dispatch.identifier,
        "otpExpiresIn": dispatch.expires_in,
        "otpReference": dispatch.reference,
    })


@router.post("/verify-otp", status_code=201)
async def verify_otp(
    payload: Dict[str, Any] = Body(...),
    service: RegistrationService = Depends(get_registration_service),
):
    """Redeem the code and create the account"""
    request = validate_payload(VerifyOTPRequest, payload)
    account = await service.complete(request.identifier, request.otp, payload)
    return create_success_response(f"{account['email']} registered successfully", account)


@router.post("/login")
async def login(
    response: Response,
    payload: Dict[str, Any] = Body(...),
    service: SessionService = Depends(get_session_service),
):
    credentials = validate_payload(LoginRequest, payload)
    session = await service.authenticate(credentials.email, credentials.password)
    set_auth_cookies(response, session)
    return create_success_response(f"Logged in successfully as {session.account_type.value}", {
        "user": session.account,
        "tokens": {
            "accessToken": session.access_token,
            "refreshToken": session.refresh_token,
        },
    })


@router.post("/logout")
async def logout(response: Response):
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.COOKIE_SECURE, samesite=settings.COOKIE_SAMESITE)
    return create_success_response("Logged out successfully")


@router.get("/me")
async def me(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: SessionService = Depends(get_session_service),
):
    token = request.cookies.get(ACCESS_COOKIE)
    if not token and credentials and credentials.credentials:
        token = credentials.credentials
    account = await service.current_account(token)
    return create_success_response("Profile fetched successfully", {
        "type": account["accountType"],
        "user": account,
    })
