"""
Vercel serverless: POST /api/stripe/create-checkout — Stripe checkout placeholder.
Returns 501 until STRIPE_SECRET_KEY is set.
"""
from api.handler_base import JSONHandler
from api.payments import create_checkout


class handler(JSONHandler):
    def handle_post(self, settings, log):
        return create_checkout(settings, log)
