# tutor/auth/auth_routes.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from tutor.auth import auth_utils
from tutor.config import Settings
from tutor.database.models import SUB_CANCELLED, SUB_FREE, SUB_PENDING, SUB_SUSPENDED, User
from tutor.database.store import UserStore
from tutor.dependencies import get_app_settings, get_billing, get_user_store
from tutor.exceptions import AlreadyExists, InvalidCredentials, NotFound, UpstreamUnavailable
from tutor.schemas import AuthResponse, UserCreate, UserLogin, UserOut
from tutor.services.billing import BillingService

logger = logging.getLogger(__name__)
router = APIRouter()

MIN_PASSWORD_LENGTH = 8


def issue_token(user: User, settings: Settings, response: Response) -> AuthResponse:
    """Signs a token for the user and also sets it as an httponly cookie."""
    token = auth_utils.create_access_token(user.id, settings)
    response.set_cookie(
        key=auth_utils.TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=settings.access_token_expire_days * 24 * 3600,
    )
    return AuthResponse(token=token, user=UserOut.from_user(user))


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    response: Response,
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
    settings: Settings = Depends(get_app_settings),
):
    if not user_data.username.strip() or not user_data.password:
        raise HTTPException(status_code=400, detail="email, username, and password are required")
    if len(user_data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    try:
        user = users.create(user_data.email, user_data.username, user_data.password)
    except AlreadyExists:
        raise HTTPException(status_code=409, detail="email already registered")

    # Admin skips checkout; without billing configured everyone does
    if user.is_admin:
        return issue_token(user, settings, response)
    if not billing.enabled:
        user = users.set_subscription_status(user.id, SUB_FREE, None)
        return issue_token(user, settings, response)

    try:
        checkout_url = billing.create_checkout(user, user_data.plan)
    except UpstreamUnavailable:
        # Roll back so the email isn't locked out
        users.delete(user.id)
        raise HTTPException(status_code=502, detail="payment system unavailable, please try again")
    return {"checkout_url": checkout_url}


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    response: Response,
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
    settings: Settings = Depends(get_app_settings),
):
    try:
        user = users.authenticate(credentials.email, credentials.password)
    except InvalidCredentials:
        raise HTTPException(status_code=401, detail="invalid email or password")

    if not user.has_any_access():
        detail = {"status": user.subscription_status}
        if user.subscription_status == SUB_PENDING:
            detail["error"] = "Please complete your subscription setup to sign in."
            if billing.enabled:
                try:
                    detail["checkout_url"] = billing.create_checkout(user, "trial")
                except UpstreamUnavailable:
                    logger.warning(f"Could not create checkout for pending user {user.id}")
        elif user.subscription_status == SUB_SUSPENDED:
            detail["error"] = "Your account has been suspended. Please contact support."
        elif user.subscription_status == SUB_CANCELLED:
            detail["error"] = "Your subscription has been cancelled. Please resubscribe to continue."
        else:
            detail["error"] = "Account access denied."
        raise HTTPException(status_code=403, detail=detail)

    return issue_token(user, settings, response)


@router.post("/logout")
def logout(response: Response, user_id: str = Depends(auth_utils.get_current_user_id)):
    response.delete_cookie(key=auth_utils.TOKEN_COOKIE)
    return {"message": "logged out"}


@router.get("/me", response_model=UserOut)
def me(
    user_id: str = Depends(auth_utils.get_current_user_id),
    users: UserStore = Depends(get_user_store),
):
    try:
        return UserOut.from_user(users.get_by_id(user_id))
    except NotFound:
        raise HTTPException(status_code=404, detail="user not found")
