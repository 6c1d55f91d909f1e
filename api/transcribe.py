"""
Vercel serverless: POST /api/transcribe — Whisper speech-to-text.
Body: multipart form with an "audio" file  →  {"transcription": "..."}
Requires: OPENAI_API_KEY
"""
from api.handler_base import JSONHandler
from api.transcription import clip_from_multipart, transcribe_audio


class handler(JSONHandler):
    def handle_post(self, settings, log):
        clip = None
        if settings.openai_configured:
            clip = clip_from_multipart(self.body, self.headers.get("Content-Type", ""))
        return 200, transcribe_audio(clip, settings=settings, log=log)
