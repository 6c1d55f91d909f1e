"""
Stripe placeholders for /api/stripe/create-checkout and /api/stripe/webhook.
Both report 501 until the Stripe secrets are set; no checkout session or event verification is performed yet.
"""

CHECKOUT_INSTRUCTIONS = [
    "1. Create products/prices in Stripe Dashboard",
    "2. Set STRIPE_SECRET_KEY environment variable",
    "3. Set APP_URL environment variable",
    "4. Implement the checkout session call in api/payments.py",
    "5. Test with Stripe test mode before going live",
]


def create_checkout(settings, log=None) -> tuple:
    """Returns (status, body)."""
    if not settings.stripe_secret_key:
        if log:
            log.warn("Stripe", "Checkout requested but Stripe is not configured")
        return 501, {
            "error": "Stripe not configured",
            "message": "Please set STRIPE_SECRET_KEY in your environment variables",
        }
    return 200, {
        "message": "Stripe checkout endpoint - awaiting configuration",
        "status": "placeholder",
        "instructions": CHECKOUT_INSTRUCTIONS,
    }


def handle_webhook(settings, log=None) -> tuple:
    """Returns (status, body)."""
    if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
        if log:
            log.warn("Stripe", "Webhook received but Stripe is not configured")
        return 501, {
            "error": "Stripe not configured",
            "message": "Please set STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET environment variables",
        }
    return 200, {
        "message": "Stripe webhook endpoint - awaiting configuration",
        "status": "placeholder",
    }
