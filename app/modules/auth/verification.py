from supabase import Client
from app.config import settings
from app.core.exceptions import ConflictError, UpstreamError, ValidationError
from app.modules.auth.schemas import SendCodeResponse, VerifyCodeResponse
from app.modules.auth.sms_client import SensSmsClient
from app.modules.users.service import UserService
from typing import Any, Dict, Optional
from fastapi import HTTPException
from datetime import datetime, timedelta, timezone
import secrets
import logging

logger = logging.getLogger(__name__)

PURPOSE_SIGNUP = "signup"
PURPOSE_EXISTING = "existing"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def generate_code() -> str:
    return f"{100000 + secrets.randbelow(900000)}"


class PhoneVerificationService:
    """
    One-time SMS codes for phone ownership checks.

    Issuing a code expires every outstanding code for the phone. A code is
    accepted once, within its lifetime, and only while its failed attempts
    are below the configured maximum.
    """

    def __init__(self, supabase: Client, sms: Optional[SensSmsClient] = None):
        self.supabase = supabase
        self.sms = sms or SensSmsClient()
        self.users = UserService(supabase)

    # Issuing

    def _expire_outstanding(self, phone: str) -> None:
        self.supabase.table("phone_verifications")\
            .update({"is_expired": True, "updated_at": _now().isoformat()})\
            .eq("phone", phone)\
            .eq("is_verified", False)\
            .eq("is_expired", False)\
            .execute()

    def _issue(self, phone: str, purpose: str, user_id: Optional[str] = None) -> SendCodeResponse:
        try:
            self._expire_outstanding(phone)
            code = generate_code()
            self.supabase.table("phone_verifications").insert({
                "phone": phone,
                "user_id": user_id,
                "purpose": purpose,
                "verification_code": code,
                "attempts": 0,
                "is_verified": False,
                "is_expired": False,
                "expires_at": (_now() + timedelta(minutes=settings.verification_code_ttl_minutes)).isoformat(),
            }).execute()
        except Exception as e:
            logger.error(f"Error saving verification code for {phone}: {str(e)}")
            raise UpstreamError(f"Failed to save verification code: {str(e)}")

        if not settings.is_production:
            logger.info(f"[DEV] Verification code for {phone}: {code}")
        if self.sms.is_configured():
            self.sms.send_verification_code(phone, code)
        elif settings.is_production:
            raise UpstreamError("SMS gateway is not configured")
        else:
            logger.warning("SMS gateway not configured, code was only logged")

        return SendCodeResponse(phone=phone, expires_in_minutes=settings.verification_code_ttl_minutes)

    def send_signup_code(self, phone: str) -> SendCodeResponse:
        """Code for a phone that is not registered yet"""
        if self.users.phone_exists(phone):
            raise ConflictError("Phone number is already registered")
        return self._issue(phone, PURPOSE_SIGNUP)

    def send_existing_user_code(self, user_id: str) -> SendCodeResponse:
        """Code for a registered account whose phone is still unverified"""
        user = self.users.get_user_row(user_id, "id, phone, phone_verified")
        if user.get("phone_verified"):
            raise ConflictError("Phone number is already verified")
        if not user.get("phone"):
            raise ValidationError("No phone number on this account")
        return self._issue(user["phone"], PURPOSE_EXISTING, user_id)

    # Checking

    def _latest_pending(self, phone: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("phone_verifications")\
            .select("*")\
            .eq("phone", phone)\
            .eq("is_verified", False)\
            .eq("is_expired", False)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _check_code(self, phone: str, code: str) -> Dict[str, Any]:
        try:
            record = self._latest_pending(phone)
            if not record or _parse_ts(record["expires_at"]) <= _now():
                raise ValidationError("Invalid or expired verification code")

            attempts = record.get("attempts") or 0
            if attempts >= settings.verification_max_attempts:
                raise ValidationError("Too many failed attempts. Request a new code.")

            if not secrets.compare_digest(record["verification_code"], code):
                self.supabase.table("phone_verifications")\
                    .update({"attempts": attempts + 1, "updated_at": _now().isoformat()})\
                    .eq("id", record["id"])\
                    .eq("attempts", attempts)\
                    .execute()
                raise ValidationError("Invalid or expired verification code")

            now = _now().isoformat()
            result = self.supabase.table("phone_verifications")\
                .update({"is_verified": True, "verified_at": now, "updated_at": now})\
                .eq("id", record["id"])\
                .eq("is_verified", False)\
                .execute()
            if not result.data:
                # consumed by a concurrent request
                raise ValidationError("Invalid or expired verification code")
            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error verifying code for {phone}: {str(e)}")
            raise UpstreamError(f"Phone verification failed: {str(e)}")

    def verify_signup_code(self, phone: str, code: str) -> VerifyCodeResponse:
        if self.users.phone_exists(phone):
            raise ConflictError("Phone number is already registered")
        self._check_code(phone, code)
        logger.info(f"Phone {phone} verified for signup")
        return VerifyCodeResponse(phone=phone)

    def verify_existing_user_code(self, user_id: str, code: str) -> VerifyCodeResponse:
        user = self.users.get_user_row(user_id, "id, phone, phone_verified")
        if user.get("phone_verified"):
            raise ConflictError("Phone number is already verified")
        phone = user.get("phone")
        if not phone:
            raise ValidationError("No phone number on this account")
        self._check_code(phone, code)
        try:
            self.supabase.table("users")\
                .update({"phone_verified": True, "updated_at": _now().isoformat()})\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating phone_verified for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to update user verification status: {str(e)}")
        logger.info(f"Phone verified for user {user_id}")
        return VerifyCodeResponse(phone=phone)

    def has_recent_verification(self, phone: str, window_minutes: Optional[int] = None) -> bool:
        """True when the phone passed verification within the window (default: registration window)"""
        window = window_minutes if window_minutes is not None else settings.verified_phone_window_minutes
        since = (_now() - timedelta(minutes=window)).isoformat()
        try:
            result = self.supabase.table("phone_verifications")\
                .select("id")\
                .eq("phone", phone)\
                .eq("is_verified", True)\
                .gte("verified_at", since)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Error checking phone verification for {phone}: {str(e)}")
            raise UpstreamError(f"Failed to check phone verification: {str(e)}")
