"""
Vercel serverless: POST /api/agents/mood — GPT mood analysis of a transcription.
Body: {"transcription": "..."}  →  {"mood": "..."}
Requires: OPENAI_API_KEY
"""
from api.analysis import analyze_request
from api.handler_base import JSONHandler


class handler(JSONHandler):
    def handle_post(self, settings, log):
        payload = self._json() if settings.openai_configured else None
        return 200, analyze_request("mood", payload, settings=settings, log=log)
