"""
Whisper speech-to-text proxy shared by api/transcribe.py and server.py.
Requires: OPENAI_API_KEY
"""
from io import BytesIO

from werkzeug.formparser import parse_form_data

from api.errors import from_upstream, invalid_request, misconfigured, upstream_details
from api.logger import measure_time, new_request_id
from api.recording import AudioClip

MAX_AUDIO_SIZE = 25 * 1024 * 1024  # 25MB limit

SERVICE = "Whisper"


def openai_client(settings):
    import openai
    return openai.OpenAI(api_key=settings.openai_api_key)


def transcribe_audio(clip, *, settings, log, client=None) -> dict:
    """Forward one clip to Whisper. Returns {"transcription": text}; raises ProxyError."""
    request_id = new_request_id("req")
    log.info(SERVICE, "Transcription request received", metadata={"requestId": request_id})

    if not settings.openai_configured:
        log.error(SERVICE, "API key not configured", metadata={"requestId": request_id})
        raise misconfigured(
            "OpenAI API key not configured. Please set OPENAI_API_KEY in your environment variables.",
            request_id,
        )

    if clip is None or not clip.data:
        log.warn(SERVICE, "No audio file provided in request", metadata={"requestId": request_id})
        raise invalid_request("No audio file provided", request_id)

    if clip.size > MAX_AUDIO_SIZE:
        log.warn(SERVICE, "Audio file too large", metadata={"requestId": request_id, "fileSize": clip.size})
        raise invalid_request("Audio file too large (max 25MB)", request_id)

    log.info(SERVICE, "Starting OpenAI Whisper API call", metadata={
        "requestId": request_id,
        "fileSize": f"{clip.size / 1024:.2f} KB",
        "fileType": clip.mime_type,
    })

    client = client or openai_client(settings)
    try:
        result, duration = measure_time(
            client.audio.transcriptions.create,
            model=settings.transcribe_model,
            file=(clip.filename, clip.data, clip.mime_type),
            language=settings.transcribe_language,
        )
    except Exception as e:
        status, code = upstream_details(e)
        log.error(SERVICE, "Transcription failed", exc=e, metadata={
            "requestId": request_id,
            "errorStatus": status,
            "errorCode": code,
        })
        raise from_upstream(e, "Failed to transcribe audio", request_id, allow_auth=True) from e

    text = getattr(result, "text", None) or ""
    log.info(SERVICE, "OpenAI Whisper API call completed successfully", duration, {
        "requestId": request_id,
        "transcriptionLength": len(text),
        "wordsEstimate": len(text.split()),
    })
    return {"transcription": text}


def clip_from_multipart(body: bytes, content_type: str, field: str = "audio"):
    """Pull the audio upload out of a raw multipart body. Returns None when the field is absent."""
    if "multipart/form-data" not in (content_type or ""):
        return None
    environ = {
        "REQUEST_METHOD": "POST",
        "CONTENT_TYPE": content_type,
        "CONTENT_LENGTH": str(len(body)),
        "wsgi.input": BytesIO(body),
    }
    _, _, files = parse_form_data(environ)
    upload = files.get(field)
    if upload is None or not upload.filename:
        return None
    return AudioClip.from_upload(upload)
