from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase
from app.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, MeResponse,
    SendCodeRequest, SendCodeResponse, VerifyCodeRequest, VerifyCodeResponse,
    ExistingUserVerifyRequest
)
from app.modules.auth.service import AuthService
from app.modules.auth.sms_client import SensSmsClient, get_sms_client
from app.modules.auth.verification import PhoneVerificationService
from app.core.dependencies import get_current_user_id, get_auth_service, security
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


def get_verification_service(
    supabase: Client = Depends(get_supabase),
    sms: SensSmsClient = Depends(get_sms_client)
) -> PhoneVerificationService:
    return PhoneVerificationService(supabase, sms)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    supabase: Client = Depends(get_supabase),
    verification: PhoneVerificationService = Depends(get_verification_service)
):
    """Register a new user. The phone must have been verified in the last few minutes."""
    return AuthService(supabase, verification).register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
async def get_current_user(
    current_user: Dict = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service)
):
    return service.get_me(current_user)


@router.post("/phone/send-code", response_model=SendCodeResponse)
async def send_signup_code(
    request: SendCodeRequest,
    service: PhoneVerificationService = Depends(get_verification_service)
):
    """Send a code to a phone number that is not registered yet"""
    return service.send_signup_code(request.phone)


@router.post("/phone/verify", response_model=VerifyCodeResponse)
async def verify_signup_code(
    request: VerifyCodeRequest,
    service: PhoneVerificationService = Depends(get_verification_service)
):
    return service.verify_signup_code(request.phone, request.code)


@router.post("/phone/send-code/existing", response_model=SendCodeResponse)
async def send_existing_user_code(
    current_user: Dict = Depends(get_current_user_id),
    service: PhoneVerificationService = Depends(get_verification_service)
):
    """Send a code to the phone on the current account"""
    return service.send_existing_user_code(current_user["id"])


@router.post("/phone/verify/existing", response_model=VerifyCodeResponse)
async def verify_existing_user_code(
    request: ExistingUserVerifyRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: PhoneVerificationService = Depends(get_verification_service)
):
    return service.verify_existing_user_code(current_user["id"], request.code)
