# tutor/routes/billing.py
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from starlette.concurrency import run_in_threadpool

from tutor.auth.auth_routes import issue_token
from tutor.auth.auth_utils import get_current_user_id
from tutor.config import Settings
from tutor.database.models import User
from tutor.database.store import UserStore
from tutor.dependencies import get_app_settings, get_billing, get_user_store
from tutor.exceptions import NotFound, TutorError
from tutor.schemas import CheckoutRequest
from tutor.services.billing import BillingService

logger = logging.getLogger(__name__)
router = APIRouter()


def _current_user(user_id: str, users: UserStore) -> User:
    try:
        return users.get_by_id(user_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="user not found")


@router.get("/status")
def billing_status(
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
):
    user = _current_user(user_id, users)
    return {
        "subscription_status": user.subscription_status,
        "trial_ends_at": user.trial_ends_at,
        "has_full_access": user.has_full_access(),
        "has_conversation_access": user.has_conversation_access(),
    }


@router.post("/checkout")
def create_checkout(
    data: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
):
    user = _current_user(user_id, users)
    try:
        return {"checkout_url": billing.create_checkout(user, data.plan)}
    except TutorError as e:
        raise HTTPException(status_code=e.status_code, detail="failed to create checkout session")


@router.get("/verify-checkout")
def verify_checkout(
    session_id: str,
    response: Response,
    billing: BillingService = Depends(get_billing),
    settings: Settings = Depends(get_app_settings),
):
    """Public: Stripe redirects here after checkout and the checkout session ID identifies the user."""
    try:
        user = billing.verify_checkout(session_id)
    except TutorError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    auth = issue_token(user, settings, response)
    return {
        "subscription_status": user.subscription_status,
        "trial_ends_at": user.trial_ends_at,
        "token": auth.token,
        "user": auth.user,
    }


@router.post("/cancel")
def cancel_subscription(
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
):
    user = _current_user(user_id, users)
    try:
        user = billing.cancel(user)
    except TutorError as e:
        logger.error(f"Cancel subscription error (user {user_id}): {e.detail}")
        raise HTTPException(status_code=e.status_code, detail="failed to cancel subscription")
    return {"status": user.subscription_status}


@router.post("/portal")
def billing_portal(
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
):
    user = _current_user(user_id, users)
    try:
        return {"portal_url": billing.portal_url(user)}
    except TutorError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    billing: BillingService = Depends(get_billing),
):
    """Public: authenticity comes from the Stripe signature."""
    payload = await request.body()
    # Signature check and event handling may call Stripe and write the users file
    try:
        event = await run_in_threadpool(billing.parse_event, payload, stripe_signature)
    except TutorError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    await run_in_threadpool(billing.handle_event, event)
    return {"received": True}
