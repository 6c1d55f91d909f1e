"""
Vercel serverless: POST /api/agents/sentiment — GPT sentiment analysis of a transcription.
Body: {"transcription": "..."}  →  {"sentiment": "..."}
Requires: OPENAI_API_KEY
"""
from api.analysis import analyze_request
from api.handler_base import JSONHandler


class handler(JSONHandler):
    def handle_post(self, settings, log):
        payload = self._json() if settings.openai_configured else None
        return 200, analyze_request("sentiment", payload, settings=settings, log=log)
