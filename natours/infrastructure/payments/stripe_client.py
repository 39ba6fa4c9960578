from typing import Any

import stripe

from natours.config import Settings

CHECKOUT_CURRENCY = "usd"


def create_checkout_session(
    settings: Settings,
    *,
    tour_id: int,
    tour_name: str,
    tour_summary: str,
    image_urls: list[str],
    unit_amount_cents: int,
    customer_email: str,
    success_url: str,
    cancel_url: str,
) -> Any:
    return stripe.checkout.Session.create(
        api_key=settings.stripe_secret_key,
        mode="payment",
        payment_method_types=["card"],
        success_url=success_url,
        cancel_url=cancel_url,
        customer_email=customer_email,
        client_reference_id=str(tour_id),
        line_items=[
            {
                "quantity": 1,
                "price_data": {
                    "currency": CHECKOUT_CURRENCY,
                    "unit_amount": unit_amount_cents,
                    "product_data": {
                        "name": f"{tour_name} Tour",
                        "description": tour_summary,
                        "images": image_urls,
                    },
                },
            }
        ],
    )


def construct_webhook_event(settings: Settings, payload: bytes, signature: str | None) -> Any:
    """Verify the signature over the exact raw bytes and return the event.

    Raises ``ValueError`` for unparsable payloads and
    ``stripe.SignatureVerificationError`` for bad or missing signatures.
    """
    return stripe.Webhook.construct_event(payload, signature or "", settings.stripe_webhook_secret)
