import hashlib
import time
from supabase import Client
from app.core.best_effort import run_best_effort
from app.core.exceptions import ConflictError, UpstreamError, ValidationError
from app.database.supabase_client import row_or_none, is_unique_violation
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, MeResponse
from app.modules.auth.verification import PhoneVerificationService
from app.modules.tickets.service import TicketService
from app.modules.users.service import UserService
from fastapi import HTTPException
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client, verification: Optional[PhoneVerificationService] = None):
        self.supabase = supabase
        self._verification = verification
        self.users = UserService(supabase)

    @property
    def verification(self) -> PhoneVerificationService:
        if self._verification is None:
            self._verification = PhoneVerificationService(self.supabase)
        return self._verification

    def _check_duplicates(self, register_data: RegisterRequest) -> None:
        if self.users.email_exists(register_data.email):
            raise ConflictError("Email already exists")
        if self.users.phone_exists(register_data.phone):
            raise ConflictError("Phone number already exists")
        if self.users.name_exists(register_data.name):
            raise ConflictError("Name already exists")

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """
        Register a new user.

        The phone must have passed SMS verification shortly before. The auth
        account is created through Supabase Auth, the profile row through the
        users table, and the initial free ticket is granted afterwards.
        """
        if not self.verification.has_recent_verification(register_data.phone):
            raise ValidationError("Phone number must be verified before registration")
        self._check_duplicates(register_data)

        try:
            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": {"name": register_data.name}
                }
            })
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise ConflictError("Email already exists")
            logger.error(f"Supabase sign up failed: {error_message}")
            raise UpstreamError(f"Registration failed: {error_message}")

        if not auth_response.user:
            raise UpstreamError("Failed to register user")
        user_id = auth_response.user.id

        try:
            self.supabase.table("users").insert({
                "id": user_id,
                "name": register_data.name,
                "email": register_data.email,
                "phone": register_data.phone,
                "phone_verified": True,
                "gender": register_data.gender.value,
                "age": register_data.age,
            }).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("Email, phone or name already exists")
            logger.error(f"Error creating profile for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to create user profile: {str(e)}")

        run_best_effort(f"initial_ticket:{user_id}", TicketService(self.supabase).get_balance, user_id)
        logger.info(f"Registered user {user_id}")

        return RegisterResponse(
            user_id=user_id,
            email=auth_response.user.email or register_data.email,
            name=register_data.name,
            message="User registered successfully"
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth"""
        try:
            # Sign in with password
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })

            if not auth_response.user or not auth_response.session:
                raise HTTPException(status_code=401, detail="Invalid credentials")

            return TokenResponse(
                access_token=auth_response.session.access_token,
                refresh_token=auth_response.session.refresh_token,
                token_type="bearer",
                user_id=auth_response.user.id,
                email=auth_response.user.email or login_data.email
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            logger.error(f"Login failed: {error_message}")
            raise UpstreamError(f"Login failed: {error_message}")

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
                "created_at": user.created_at,
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")

    def get_me(self, user_data: Dict[str, Any]) -> MeResponse:
        """Auth identity merged with the profile row (profile may be missing right after sign up)"""
        try:
            result = self.supabase.table("users")\
                .select("id, email, name, phone, phone_verified, gender, age, created_at")\
                .eq("id", user_data["id"])\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching profile for {user_data['id']}: {str(e)}")
            raise UpstreamError(f"Failed to get user: {str(e)}")
        profile = row_or_none(result) or {}
        app_metadata = user_data.get("app_metadata") or {}
        return MeResponse(
            **{**profile, "id": user_data["id"], "email": profile.get("email") or user_data.get("email")},
            is_super_user=app_metadata.get("type") == "super_user",
        )

    def logout(self, token: str) -> bool:
        """Logout user using Supabase Auth"""
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            # Supabase tokens are stateless JWTs; they stay valid until they expire
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {str(e)}")
            return False
