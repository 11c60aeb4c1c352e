# tutor/services/billing.py
"""
Subscription billing on Stripe.

`StripeGateway` is the only code that talks to the Stripe SDK; it hands plain
dicts and strings to `BillingService`, which keeps the user records in step
with checkout sessions and webhook events.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from tutor.config import Settings
from tutor.database.models import (
    SUB_ACTIVE,
    SUB_CANCELLED,
    SUB_PAST_DUE,
    SUB_SUSPENDED,
    SUB_TRIALING,
    User,
)
from tutor.database.store import UserStore
from tutor.exceptions import BadRequest, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

TRIAL_DAYS = 7
PLANS = ("trial", "immediate")


def map_stripe_status(status: str) -> str:
    mapping = {
        "trialing": SUB_TRIALING,
        "active": SUB_ACTIVE,
        "past_due": SUB_PAST_DUE,
        "canceled": SUB_CANCELLED,
        "cancelled": SUB_CANCELLED,
    }
    return mapping.get(status, status)


def _from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _object_id(value) -> str:
    """Stripe fields hold either an ID or the expanded object."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return value.get("id", "") if isinstance(value, dict) else getattr(value, "id", "") or ""


class StripeGateway:
    def __init__(self, settings: Settings):
        stripe.api_key = settings.stripe_secret_key
        self.price_id = settings.stripe_price_id
        self.webhook_secret = settings.stripe_webhook_secret
        self.app_base_url = settings.app_base_url

    def create_customer(self, email: str, name: str, user_id: str) -> str:
        customer = stripe.Customer.create(email=email, name=name, metadata={"user_id": user_id})
        return customer.id

    def create_checkout_url(self, customer_id: str, user_id: str, trial_days: Optional[int]) -> str:
        params: Dict[str, Any] = {
            "customer": customer_id,
            "mode": "subscription",
            "line_items": [{"price": self.price_id, "quantity": 1}],
            "client_reference_id": user_id,
            "success_url": f"{self.app_base_url}/checkout-complete.html?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.app_base_url}/?checkout=cancelled",
        }
        if trial_days:
            params["subscription_data"] = {"trial_period_days": trial_days}
        session = stripe.checkout.Session.create(**params)
        return session.url

    def retrieve_checkout(self, session_id: str) -> dict:
        session = stripe.checkout.Session.retrieve(session_id, expand=["subscription"])
        subscription = session.subscription
        return {
            "client_reference_id": session.client_reference_id or "",
            "customer_id": _object_id(session.customer),
            "subscription": _subscription_dict(subscription) if subscription else None,
        }

    def retrieve_subscription(self, subscription_id: str) -> dict:
        return _subscription_dict(stripe.Subscription.retrieve(subscription_id))

    def cancel_subscription(self, subscription_id: str) -> None:
        try:
            stripe.Subscription.cancel(subscription_id)
        except stripe.InvalidRequestError as e:
            # Already gone on Stripe's side
            if e.code != "resource_missing":
                raise

    def create_portal_url(self, customer_id: str) -> str:
        session = stripe.billing_portal.Session.create(
            customer=customer_id, return_url=f"{self.app_base_url}/profile.html"
        )
        return session.url

    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verifies the signature and returns the event as plain JSON."""
        stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        return json.loads(payload)


def _subscription_dict(subscription) -> dict:
    if isinstance(subscription, str):
        return {"id": subscription, "status": "", "trial_end": None}
    return {
        "id": subscription.id,
        "status": subscription.status or "",
        "trial_end": subscription.trial_end,
    }


class BillingService:
    def __init__(self, users: UserStore, gateway: Optional[StripeGateway] = None):
        self.users = users
        self.gateway = gateway

    @property
    def enabled(self) -> bool:
        return self.gateway is not None

    def _require_gateway(self) -> StripeGateway:
        if self.gateway is None:
            raise UpstreamUnavailable("billing is not configured")
        return self.gateway

    def create_checkout(self, user: User, plan: str = "trial") -> str:
        """Returns a Checkout URL, creating the Stripe customer on first use."""
        gateway = self._require_gateway()
        if plan not in PLANS:
            plan = "trial"
        try:
            customer_id = user.stripe_customer_id
            if not customer_id:
                customer_id = gateway.create_customer(user.email, user.username, user.id)
                # Stored now so webhooks can find the user by customer ID
                self.users.update_subscription(user.id, customer_id=customer_id)
            return gateway.create_checkout_url(customer_id, user.id, TRIAL_DAYS if plan == "trial" else None)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout error for user {user.id}: {e}")
            raise UpstreamUnavailable("payment system unavailable") from e

    def verify_checkout(self, session_id: str) -> User:
        gateway = self._require_gateway()
        if not session_id:
            raise BadRequest("missing session_id")
        try:
            checkout = gateway.retrieve_checkout(session_id)
        except stripe.StripeError as e:
            logger.warning(f"Invalid checkout session {session_id}: {e}")
            raise BadRequest("invalid checkout session") from e

        user_id = checkout["client_reference_id"]
        if not user_id:
            raise BadRequest("no user associated with session")
        subscription = checkout["subscription"]
        if subscription is None:
            raise BadRequest("no subscription in session")

        return self.users.update_subscription(
            user_id,
            customer_id=checkout["customer_id"],
            subscription_id=subscription["id"],
            status=map_stripe_status(subscription["status"]),
            trial_ends_at=_from_timestamp(subscription["trial_end"]),
        )

    def cancel(self, user: User) -> User:
        """Cancels on Stripe and locally; the trial end date stays so trial access runs out naturally."""
        self.cancel_stripe_only(user)
        return self.users.update_subscription(user.id, status=SUB_CANCELLED)

    def cancel_stripe_only(self, user: User) -> None:
        if not user.stripe_subscription_id or self.gateway is None:
            return
        try:
            self.gateway.cancel_subscription(user.stripe_subscription_id)
        except stripe.StripeError as e:
            raise UpstreamUnavailable("failed to cancel subscription") from e

    def portal_url(self, user: User) -> str:
        gateway = self._require_gateway()
        if not user.stripe_customer_id:
            raise BadRequest("no billing account found")
        try:
            return gateway.create_portal_url(user.stripe_customer_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe portal error for user {user.id}: {e}")
            raise UpstreamUnavailable("failed to create billing portal session") from e

    def parse_event(self, payload: bytes, signature: str) -> dict:
        gateway = self._require_gateway()
        try:
            return gateway.construct_event(payload, signature)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook signature error: {e}")
            raise BadRequest("invalid signature") from e

    def handle_event(self, event: dict) -> None:
        """Applies a webhook event. Events for unknown users are ignored."""
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"Stripe webhook: {event_type}")
        try:
            if event_type == "checkout.session.completed":
                self._on_checkout_completed(obj)
            elif event_type == "customer.subscription.updated":
                self._on_subscription_updated(obj)
            elif event_type == "customer.subscription.deleted":
                self._on_subscription_deleted(obj)
            elif event_type == "invoice.payment_failed":
                user = self.users.get_by_stripe_customer_id(_object_id(obj.get("customer")))
                self.users.update_subscription(user.id, status=SUB_PAST_DUE)
            elif event_type == "invoice.payment_succeeded":
                user = self.users.get_by_stripe_customer_id(_object_id(obj.get("customer")))
                if user.subscription_status == SUB_PAST_DUE:
                    self.users.update_subscription(user.id, status=SUB_ACTIVE)
        except NotFound:
            logger.info(f"Stripe webhook {event_type} for unknown user, ignored")

    def _on_checkout_completed(self, obj: dict) -> None:
        user_id = obj.get("client_reference_id") or ""
        subscription = obj.get("subscription")
        if not user_id or not subscription:
            return
        if isinstance(subscription, str):
            if self.gateway is None:
                return
            try:
                subscription = self.gateway.retrieve_subscription(subscription)
            except stripe.StripeError as e:
                logger.error(f"Could not fetch subscription {subscription}: {e}")
                return
        self.users.update_subscription(
            user_id,
            customer_id=_object_id(obj.get("customer")),
            subscription_id=subscription.get("id", ""),
            status=map_stripe_status(subscription.get("status", "")),
            trial_ends_at=_from_timestamp(subscription.get("trial_end")),
        )

    def _on_subscription_updated(self, obj: dict) -> None:
        user = self.users.get_by_stripe_customer_id(_object_id(obj.get("customer")))
        self.users.update_subscription(
            user.id,
            subscription_id=obj.get("id", ""),
            status=map_stripe_status(obj.get("status", "")),
            trial_ends_at=_from_timestamp(obj.get("trial_end")),
        )

    def _on_subscription_deleted(self, obj: dict) -> None:
        user = self.users.get_by_stripe_customer_id(_object_id(obj.get("customer")))
        # A manual suspension wins over Stripe's cancellation
        if user.subscription_status == SUB_SUSPENDED:
            return
        self.users.update_subscription(
            user.id,
            subscription_id=obj.get("id", ""),
            status=SUB_CANCELLED,
            trial_ends_at=_from_timestamp(obj.get("trial_end")),
        )
