"""
Recorded audio and the capture-stream lifetime around it.
The browser does the actual capture (static/recorder.js); this is the same contract on the server side.
"""
from dataclasses import dataclass

DEFAULT_MIME = "audio/webm"

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
}


@dataclass(frozen=True)
class AudioClip:
    data: bytes
    mime_type: str = DEFAULT_MIME
    filename: str = "recording.webm"

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_chunks(cls, chunks, mime_type: str = DEFAULT_MIME) -> "AudioClip":
        """Join captured chunks into one clip. No chunks gives an empty clip."""
        mime = (mime_type or DEFAULT_MIME).split(";")[0].strip() or DEFAULT_MIME
        ext = _EXTENSIONS.get(mime, "webm")
        return cls(data=b"".join(c for c in chunks if c), mime_type=mime, filename=f"recording.{ext}")

    @classmethod
    def from_upload(cls, storage) -> "AudioClip":
        """Build a clip from a werkzeug FileStorage."""
        data = storage.read()
        mime = (storage.mimetype or DEFAULT_MIME).strip()
        return cls(data=data, mime_type=mime, filename=storage.filename or "recording.webm")


class Recorder:
    """Collects chunks from a capture stream. The stream is released on stop, error, or teardown.

    Usage:
        with Recorder(stream) as rec:
            rec.add_chunk(data)
            clip = rec.stop()
    """

    def __init__(self, stream, mime_type: str = DEFAULT_MIME):
        self._stream = stream
        self.mime_type = mime_type
        self._chunks = []
        self.recording = True

    def add_chunk(self, data: bytes):
        if not self.recording:
            raise RuntimeError("Recorder already stopped")
        if data:
            self._chunks.append(bytes(data))

    def stop(self) -> AudioClip:
        try:
            return AudioClip.from_chunks(self._chunks, self.mime_type)
        finally:
            self._chunks = []
            self.release()

    def release(self):
        self.recording = False
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
