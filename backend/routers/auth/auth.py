from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from utils.errors import MarketplaceError, Unauthorized, ValidationError
from utils.vendor_store import VendorStore
from .schemas import (
    UserRegister,
    UserLogin,
    RefreshRequest,
    AuthResponse,
    TokenResponse,
    ProfileUpdateRequest,
    ProfileResponse,
)
from .helpers import auth_helpers
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
):
    """Get current user from JWT token"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    token_user = auth_helpers.verify_token(credentials.credentials)
    current_user = {
        "user_id": token_user.id,
        "email": token_user.email,
        "role": token_user.role,
    }

    request.state.current_user = current_user
    return current_user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
):
    """Like get_current_user, but anonymous callers get None"""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await get_current_user(request, credentials)
    except Unauthorized:
        return None


def _profile_response(profile) -> ProfileResponse:
    return ProfileResponse.model_validate(profile.model_dump(mode="json"))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    try:
        auth_response = auth_helpers.supabase.auth.sign_up({
            "email": user_data.email,
            "password": user_data.password,
            "options": {
                "data": {
                    "full_name": user_data.full_name,
                    "role": "buyer"
                }
            }
        })

        if auth_response.user is None:
            raise ValidationError("No se pudo crear la cuenta.")

        store = VendorStore(db)
        if await store.get_profile(auth_response.user.id) is None:
            await store.create_profile(auth_response.user.id, auth_response.user.email, user_data.full_name)
        await db.commit()
        logger.info(f"Registered profile {auth_response.user.id}")

        if auth_response.session is None:
            return AuthResponse(
                access_token="",
                refresh_token="",
                message="Cuenta creada. Revisa tu correo para confirmarla antes de iniciar sesion."
            )

        return AuthResponse(
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token
        )

    except MarketplaceError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Registration failed: {str(e)}")
        raise


@router.post("/login", response_model=AuthResponse)
async def login(user_data: UserLogin):
    try:
        auth_response = auth_helpers.supabase.auth.sign_in_with_password({
            "email": user_data.email,
            "password": user_data.password
        })
    except Exception as e:
        logger.warning(f"Login failed: {str(e)}")
        raise Unauthorized("Credenciales invalidas.")

    if auth_response.user is None or auth_response.session is None:
        raise Unauthorized("Credenciales invalidas.")

    return AuthResponse(
        access_token=auth_response.session.access_token,
        refresh_token=auth_response.session.refresh_token,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest):
    session = await auth_helpers.refresh_token(body.refresh_token)
    return TokenResponse(access_token=session.access_token)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Return the caller's profile, creating the row on first sight"""
    try:
        store = VendorStore(db)
        profile = await store.get_profile(current_user["user_id"])
        if profile is None:
            profile = await store.create_profile(current_user["user_id"], current_user["email"])
            await db.commit()
            logger.info(f"Created profile for {current_user['user_id']}")
        return _profile_response(profile)
    except MarketplaceError:
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error loading profile: {str(e)}")
        raise


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        store = VendorStore(db)
        profile = await store.get_profile(current_user["user_id"])
        if profile is None:
            profile = await store.create_profile(current_user["user_id"], current_user["email"])

        updates = body.model_dump(exclude_unset=True)
        if "full_name" in updates:
            full_name = (updates["full_name"] or "").strip()
            profile = await store.update_profile(profile.id, full_name=full_name or None)

        await db.commit()
        return _profile_response(profile)
    except MarketplaceError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating profile: {str(e)}")
        raise
