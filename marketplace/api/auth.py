"""
Authentication Endpoints

    POST /api/auth/register  create an account and its role profile
    POST /api/auth/login     exchange credentials for a token
    GET  /api/auth/verify    resolve the Bearer token to its user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.security import (
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from marketplace.database import get_db
from marketplace.models import (
    Client,
    Livreur,
    Restaurant,
    Restaurateur,
    User,
    UserRole,
)
from marketplace.schemas import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

DEFAULT_RESTAURANT_NAME = "Restaurant sans nom"
DEFAULT_CUISINE = "Cuisine"


async def _load_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _create_profile(db: AsyncSession, user: User, data: RegisterRequest) -> None:
    extra = data.additional_data

    if user.role == UserRole.CLIENT:
        db.add(Client(
            user_id=user.id,
            address=(extra.address if extra else None) or "",
            city=(extra.city if extra else None) or "",
            postal_code=(extra.postal_code if extra else None) or "",
        ))

    elif user.role == UserRole.RESTAURATEUR:
        restaurateur = Restaurateur(user_id=user.id)
        db.add(restaurateur)
        seed = extra.restaurant if extra else None
        if seed is not None:
            await db.flush()
            db.add(Restaurant(
                restaurateur_id=restaurateur.id,
                name=seed.name or DEFAULT_RESTAURANT_NAME,
                description=seed.description,
                address=seed.address or "",
                city=seed.city or "",
                postal_code=seed.postal_code or "",
                phone=seed.phone or user.phone or "",
                cuisine_type=seed.cuisine_type or DEFAULT_CUISINE,
            ))

    elif user.role == UserRole.LIVREUR:
        db.add(Livreur(
            user_id=user.id,
            vehicle_type=(extra.vehicle_type if extra else None) or "scooter",
            license_plate=extra.license_plate if extra else None,
            coverage_zones=(extra.coverage_zones if extra else None) or [],
        ))


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Create a user with the profile matching its role."""
    if data.role == UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin accounts cannot self-register")

    email = data.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already exists")

    user = User(
        email=email,
        password=hash_password(data.password),
        role=data.role,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )
    db.add(user)
    await db.flush()

    await _create_profile(db, user, data)
    await db.commit()

    user = await _load_user(db, user.id)
    logger.info(f"User registered: {user.email} ({user.role.value})")

    return AuthResponse(token=create_access_token(user), user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse, responses={401: {"model": ErrorResponse}})
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password):
        logger.info(f"Failed login for {data.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AuthResponse(token=create_access_token(user), user=UserResponse.model_validate(user))


@router.get("/verify", response_model=VerifyResponse, responses={401: {"model": ErrorResponse}})
async def verify(user: User = Depends(get_current_user)) -> VerifyResponse:
    return VerifyResponse(user=UserResponse.model_validate(user))
