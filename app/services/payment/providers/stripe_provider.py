# app/services/payment/providers/stripe_provider.py
import json
import logging
import stripe
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass

from app.core.errors import PaymentProviderError
from ..provider_interface import (
    PaymentProviderInterface,
    CreatePaymentIntentParams,
    PaymentIntentResult,
    WebhookEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    """Configuration for Stripe provider."""
    secret_key: str
    publishable_key: str
    webhook_secret: str
    api_version: str = "2023-10-16"
    max_retries: int = 2


STRIPE_EVENT_MAP: Dict[str, WebhookEventType] = {
    "payment_intent.succeeded": WebhookEventType.PAYMENT_INTENT_SUCCEEDED,
    "payment_intent.payment_failed": WebhookEventType.PAYMENT_INTENT_FAILED,
    "checkout.session.completed": WebhookEventType.CHECKOUT_SESSION_COMPLETED,
}


class StripeProvider(PaymentProviderInterface):
    """
    Stripe implementation of PaymentProviderInterface.

    SECURITY NOTES:
    - Never log full card details
    - Always verify webhook signatures
    - Use idempotency keys for all mutations
    """

    def __init__(self, config: StripeConfig):
        self._config = config

        # Initialize Stripe with locked API version
        stripe.api_key = config.secret_key
        stripe.api_version = config.api_version
        stripe.max_network_retries = config.max_retries

    @property
    def code(self) -> str:
        return "stripe"

    def get_publishable_key(self) -> Optional[str]:
        return self._config.publishable_key

    async def create_payment_intent(
        self, params: CreatePaymentIntentParams
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent for a booking.

        The booking id and approval flag travel in metadata and come back on
        the webhook.
        """
        try:
            intent = stripe.PaymentIntent.create(
                amount=params.amount,
                currency=params.currency.lower(),
                description=params.description,
                metadata={
                    **params.metadata,
                    "booking_id": params.booking_id,
                    "requires_host_approval": "true" if params.requires_host_approval else "false",
                },
                automatic_payment_methods={"enabled": True},
                idempotency_key=params.idempotency_key,
            )
            return PaymentIntentResult(
                intent_id=intent.id,
                client_secret=intent.client_secret,
                status=intent.status,
                provider_metadata={"livemode": intent.livemode},
            )
        except stripe.CardError as e:
            logger.error(f"Card error creating payment intent: {e.user_message}")
            raise PaymentProviderError("CARD_ERROR", e.user_message or "Card was declined", retryable=True)
        except stripe.RateLimitError as e:
            logger.error(f"Rate limit error: {e}")
            raise PaymentProviderError("RATE_LIMIT", "Too many requests", retryable=True)
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid request error: {e}")
            raise PaymentProviderError("INVALID_REQUEST", str(e))
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {e}")
            raise PaymentProviderError("PROVIDER_ERROR", "Payment service temporarily unavailable", retryable=True)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify Stripe webhook signature."""
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self._config.webhook_secret,
            )
            return True
        except stripe.SignatureVerificationError:
            return False
        except ValueError as e:
            logger.warning(f"Webhook payload is not valid JSON: {e}")
            return False

    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        """Parse a Stripe event into provider-neutral form."""
        try:
            event = json.loads(payload.decode("utf-8"))
            data_object = event["data"]["object"]
            event_id = event["id"]
            event_type_name = event["type"]
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error parsing webhook event: {e}")
            raise PaymentProviderError("PARSE_ERROR", "Could not parse webhook event")

        event_type = STRIPE_EVENT_MAP.get(event_type_name, WebhookEventType.UNKNOWN)
        metadata = data_object.get("metadata") or {}

        data: Dict[str, Any] = {
            "bookingId": metadata.get("booking_id"),
            "requiresHostApproval": str(metadata.get("requires_host_approval", "false")).lower() == "true",
            "currency": (data_object.get("currency") or "").upper(),
            "status": data_object.get("status"),
        }

        if event_type == WebhookEventType.CHECKOUT_SESSION_COMPLETED:
            data["amount"] = data_object.get("amount_total")
            data["paymentStatus"] = data_object.get("payment_status")
            data["paymentReference"] = data_object.get("payment_intent") or data_object.get("id")
        else:
            data["amount"] = data_object.get("amount_received", data_object.get("amount"))
            data["paymentStatus"] = data_object.get("status")
            data["paymentReference"] = data_object.get("id")

        created = event.get("created")
        return WebhookEvent(
            event_id=event_id,
            event_type=event_type,
            provider_event_type=event_type_name,
            data=data,
            created_at=(
                datetime.fromtimestamp(created, tz=timezone.utc)
                if created
                else datetime.now(timezone.utc)
            ),
            livemode=bool(event.get("livemode", False)),
            raw_payload=event,
        )
