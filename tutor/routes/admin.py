# tutor/routes/admin.py
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException

from tutor.auth.auth_utils import get_current_user_id
from tutor.database.models import (
    SUB_ACTIVE,
    SUB_CANCELLED,
    SUB_FREE,
    SUB_SUSPENDED,
    SUB_TRIALING,
    utcnow,
)
from tutor.database.store import UserStore
from tutor.dependencies import get_billing, get_user_store
from tutor.exceptions import NotFound, UpstreamUnavailable
from tutor.schemas import SubscriptionUpdate, UserOut
from tutor.services.billing import TRIAL_DAYS, BillingService

logger = logging.getLogger(__name__)
router = APIRouter()

ASSIGNABLE_STATUSES = {SUB_FREE, SUB_TRIALING, SUB_ACTIVE, SUB_SUSPENDED, SUB_CANCELLED}


def require_admin(
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
) -> str:
    try:
        caller = users.get_by_id(user_id)
    except NotFound:
        raise HTTPException(status_code=403, detail="forbidden")
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="forbidden")
    return user_id


@router.get("/users")
def list_users(
    admin_id: str = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
):
    everyone = sorted(users.list_all(), key=lambda u: (not u.is_admin, u.email))
    return {
        "users": [
            {**UserOut.from_user(u).model_dump(), "created_at": u.created_at}
            for u in everyone
        ]
    }


@router.patch("/users/{target_id}/subscription")
def set_subscription(
    target_id: str,
    body: SubscriptionUpdate,
    admin_id: str = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    billing: BillingService = Depends(get_billing),
):
    if target_id == admin_id:
        raise HTTPException(status_code=400, detail="cannot change your own subscription status")
    if body.status not in ASSIGNABLE_STATUSES:
        raise HTTPException(status_code=400, detail="invalid status")

    try:
        target = users.get_by_id(target_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="user not found")

    trial_ends_at = utcnow() + timedelta(days=TRIAL_DAYS) if body.status == SUB_TRIALING else None

    if body.status == SUB_SUSPENDED:
        try:
            billing.cancel_stripe_only(target)
        except UpstreamUnavailable as e:
            # The local suspension still applies
            logger.error(f"admin: stripe cancel error for user {target_id}: {e.detail}")

    try:
        users.set_subscription_status(target_id, body.status, trial_ends_at)
    except NotFound:
        raise HTTPException(status_code=404, detail="user not found")
    logger.info(f"admin {admin_id} set user {target_id} subscription to {body.status}")
    return {"status": body.status}
