import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tix.api import deps
from tix.core import security
from tix.core.errors import Forbidden, Unauthorized, ValidationError
from tix.core.identity import end_session, start_session
from tix.crud import user as user_crud
from tix.middleware.monitoring import business_metrics
from tix.middleware.rate_limiting import AUTH_LIMIT, limiter
from tix.models.user import User
from tix.schemas.user import AuthResponse, UserCreate, UserLogin
from tix.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(request: Request, user: User) -> AuthResponse:
    token = security.create_access_token(
        user.id, additional_claims={"role": user.role.value}
    )
    start_session(request, user.id)
    return AuthResponse(token=token, user=UserSchema.model_validate(user))


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register New User",
)  # type: ignore[misc]
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    user_in: UserCreate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    **Register a New User Account**

    Creates the account, starts a session and returns a bearer token so the
    client is signed in straight away.

    **Request Body:**
    - `email` (string): Unique email address
    - `firstName`, `lastName` (string): Required
    - `password` (string): At least 6 characters
    - `confirmPassword` (string): Must match `password`

    **Response:** `{token, user}`

    **Errors:**
    - `400`: Email already registered, or invalid fields
    - `429`: Too many attempts
    """
    if await user_crud.get_by_email(db, email=user_in.email):
        raise ValidationError("A user with this email already exists")

    user = await user_crud.create(db, obj_in=user_in)
    business_metrics.user_registrations_total.inc()
    logger.info("Registered user %s", user.id)
    return _auth_response(request, user)


@router.post("/login", response_model=AuthResponse, summary="User Login")  # type: ignore[misc]
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    **Authenticate with Email and Password**

    Returns `{token, user}` and sets the session cookie; either credential
    can be used on later requests.

    **Errors:**
    - `401`: Incorrect email or password
    - `403`: Account disabled
    """
    user = await user_crud.authenticate(
        db, email=credentials.email, password=credentials.password
    )
    if not user:
        raise Unauthorized("Invalid email or password")
    if not user_crud.is_active(user):
        raise Forbidden("Inactive user")

    user = await user_crud.record_login(db, user=user)
    return _auth_response(request, user)


@router.post("/logout", summary="Log Out")  # type: ignore[misc]
async def logout(request: Request) -> Dict[str, str]:
    """Clears the session cookie. Bearer tokens expire on their own."""
    end_session(request)
    return {"message": "Logged out successfully"}


@router.get("/user", response_model=UserSchema, summary="Current User")  # type: ignore[misc]
async def read_current_user(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return current_user
