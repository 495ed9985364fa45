"""
Payment gateway used by checkout and the funnel engine.

Only two calls are needed: mint a charge intent the browser confirms, and
read a charge back to verify it actually succeeded before anything is
recorded. The Stripe implementation maps both onto PaymentIntents.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

import stripe

from app.core.config import settings
from app.core.exceptions import UpstreamPaymentError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


@dataclass
class ChargeIntent:
    charge_id: str
    client_secret: str
    amount_cents: int


@dataclass
class Charge:
    charge_id: str
    status: str
    amount_cents: int = 0
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


class PaymentGateway:
    """Interface the services depend on; see StripePaymentGateway."""

    def create_charge_intent(self, amount_cents: int, currency: str, metadata: Dict[str, Any]) -> ChargeIntent:
        raise NotImplementedError

    def retrieve_charge(self, charge_id: str) -> Charge:
        raise NotImplementedError


class StripePaymentGateway(PaymentGateway):
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY

    def _require_key(self) -> str:
        if not self.api_key:
            raise UpstreamPaymentError("Stripe is not configured (STRIPE_SECRET_KEY missing)")
        return self.api_key

    def create_charge_intent(self, amount_cents: int, currency: str, metadata: Dict[str, Any]) -> ChargeIntent:
        api_key = self._require_key()
        # Stripe metadata only holds strings
        str_metadata = {k: str(v) for k, v in metadata.items() if v is not None}
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency,
                metadata=str_metadata,
                automatic_payment_methods={"enabled": True},
                api_key=api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"[STRIPE] PaymentIntent.create failed for {amount_cents} {currency}: {e}")
            raise UpstreamPaymentError(f"Payment provider error: {e.user_message or str(e)}") from e

        logger.info(f"[STRIPE] Created PaymentIntent {intent.id} for {amount_cents} {currency}")
        return ChargeIntent(charge_id=intent.id, client_secret=intent.client_secret, amount_cents=intent.amount)

    def retrieve_charge(self, charge_id: str) -> Charge:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(charge_id, api_key=api_key)
        except stripe.InvalidRequestError as e:
            logger.warning(f"[STRIPE] PaymentIntent {charge_id} could not be retrieved: {e}")
            raise UpstreamPaymentError(f"Unknown payment intent: {charge_id}") from e
        except stripe.StripeError as e:
            logger.error(f"[STRIPE] PaymentIntent.retrieve failed for {charge_id}: {e}")
            raise UpstreamPaymentError(f"Payment provider error: {e.user_message or str(e)}") from e

        metadata = {k: str(v) for k, v in (intent.metadata or {}).items()}
        return Charge(
            charge_id=intent.id,
            status=intent.status,
            amount_cents=intent.amount_received or intent.amount or 0,
            metadata=metadata,
        )
