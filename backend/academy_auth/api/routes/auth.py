from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from academy_auth.api.deps import get_account_service, get_bearer_token
from academy_auth.schemas.auth import EmailRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, VerifyRequest
from academy_auth.schemas.common import Envelope
from academy_auth.services.account_service import AccountService, AuthResult


router = APIRouter(tags=["auth"])


def _respond(request: Request, response: Response, result: AuthResult) -> dict:
    response.status_code = result.status_code
    return {"request_id": request.state.request_id, "data": result.body(), "error": None}


@router.post("/auth/register", response_model=Envelope, status_code=201)
def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.register(payload.name, str(payload.email), payload.password)
    return _respond(request, response, result)


@router.post("/auth/verify", response_model=Envelope)
def verify(
    request: Request,
    response: Response,
    payload: VerifyRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.verify(str(payload.email), payload.verification_code)
    return _respond(request, response, result)


@router.post("/auth/resend-verification", response_model=Envelope)
def resend_verification(
    request: Request,
    response: Response,
    payload: EmailRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.resend_verification(str(payload.email))
    return _respond(request, response, result)


@router.post("/auth/login", response_model=Envelope)
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.login(str(payload.email), payload.password)
    return _respond(request, response, result)


@router.post("/auth/logout", response_model=Envelope)
def logout(request: Request, response: Response, service: AccountService = Depends(get_account_service)):
    return _respond(request, response, service.logout())


@router.get("/auth/me", response_model=Envelope)
def me(
    request: Request,
    response: Response,
    token: Optional[str] = Depends(get_bearer_token),
    service: AccountService = Depends(get_account_service),
):
    result = service.current_user(token)
    return _respond(request, response, result)


@router.post("/auth/forgot-password", response_model=Envelope)
def forgot_password(
    request: Request,
    response: Response,
    payload: EmailRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.forgot_password(str(payload.email))
    return _respond(request, response, result)


@router.post("/auth/reset-password", response_model=Envelope)
def reset_password(
    request: Request,
    response: Response,
    payload: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    result = service.reset_password(payload.token, payload.new_password)
    return _respond(request, response, result)
