"""
Vercel serverless: POST /api/stripe/webhook — Stripe webhook placeholder.
Returns 501 until STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are set.
"""
from api.handler_base import JSONHandler
from api.payments import handle_webhook


class handler(JSONHandler):
    def handle_post(self, settings, log):
        return handle_webhook(settings, log)
