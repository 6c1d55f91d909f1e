"""
Client session flow: record → transcribe → free preview → pay → return → unlock mood.

The only state that survives the navigation to the payment page is the SessionRecord,
kept in whatever SessionStore the page layer provides (SQLite keyed by a cookie id in server.py).
"""
from dataclasses import dataclass, replace
from enum import Enum

from api.analysis import FREE_AGENTS, PAID_AGENTS
from api.errors import ProxyError
from api.recording import Recorder
from api.security import is_payment_return

SERVICE = "SessionFlow"
STORAGE_KEY = "voice_session"


class PaymentState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class Stage(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    RECORDED = "recorded"
    TRANSCRIBING = "transcribing"
    FREE_ANALYSIS = "free-analysis"
    AWAITING_PAYMENT = "awaiting-payment"
    RETURNED_PENDING_UNLOCK = "returned-pending-unlock"
    UNLOCKED = "unlocked"


class Event(str, Enum):
    TRANSCRIBED = "transcribed"
    PREVIEWED = "previewed"
    UNLOCK_REQUESTED = "unlock-requested"
    PAYMENT_CONFIRMED = "payment-confirmed"
    CLEARED = "cleared"


class InvalidTransition(Exception):
    pass


@dataclass(frozen=True)
class SessionRecord:
    transcript: str = None
    payment: PaymentState = PaymentState.NONE
    sentiment: str = None
    summary: str = None

    def to_dict(self) -> dict:
        return {
            "transcript": self.transcript,
            "payment": self.payment.value,
            "sentiment": self.sentiment,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data) -> "SessionRecord":
        if not isinstance(data, dict):
            return cls()
        try:
            payment = PaymentState(data.get("payment") or PaymentState.NONE.value)
        except ValueError:
            payment = PaymentState.NONE
        return cls(
            transcript=data.get("transcript") or None,
            payment=payment,
            sentiment=data.get("sentiment"),
            summary=data.get("summary"),
        )


EMPTY = SessionRecord()


def transition(record: SessionRecord, event: Event, **data) -> SessionRecord:
    """Apply one event to the durable record. Raises InvalidTransition when not allowed."""
    if event is Event.CLEARED:
        return EMPTY
    if event is Event.TRANSCRIBED:
        transcript = data.get("transcript")
        if not transcript:
            raise InvalidTransition("A transcript is required")
        return SessionRecord(transcript=transcript)
    if event is Event.PREVIEWED:
        if not record.transcript:
            raise InvalidTransition("Cannot preview without a transcript")
        return replace(record, sentiment=data.get("sentiment"), summary=data.get("summary"))
    if event is Event.UNLOCK_REQUESTED:
        if not record.transcript:
            raise InvalidTransition("No recording found. Please record audio first.")
        if record.sentiment is None or record.summary is None:
            raise InvalidTransition("The free preview has not finished yet. Please retry it before paying.")
        return replace(record, payment=PaymentState.PENDING)
    if event is Event.PAYMENT_CONFIRMED:
        if not record.transcript or record.payment is not PaymentState.PENDING:
            raise InvalidTransition("No pending payment to confirm")
        return replace(record, payment=PaymentState.CONFIRMED)
    raise InvalidTransition(f"Unknown event: {event}")


class MemoryStore:
    def __init__(self, record: SessionRecord = None):
        self.record = record or EMPTY

    def load(self) -> SessionRecord:
        return self.record

    def save(self, record: SessionRecord):
        self.record = record

    def clear(self):
        self.record = EMPTY


@dataclass
class View:
    stage: Stage = Stage.IDLE
    transcript: str = None
    sentiment: str = None
    summary: str = None
    mood: str = None
    payment: PaymentState = PaymentState.NONE
    redirect_url: str = None
    error: str = None
    warning: str = None
    strip_query: bool = False

    @property
    def mood_locked(self) -> bool:
        return self.mood is None

    @property
    def can_unlock(self) -> bool:
        """Payment is offered only once both free results are on screen."""
        return self.stage is Stage.FREE_ANALYSIS and self.sentiment is not None and self.summary is not None


class RecordingFlow:
    """Drives the page stages. transcribe(clip) -> text, analyze(names, transcript) -> {field: text}."""

    def __init__(self, store, transcribe, analyze, log):
        self.store = store
        self._transcribe = transcribe
        self._analyze = analyze
        self.log = log
        self.stage = Stage.IDLE

    def _show(self, view: View) -> View:
        self.stage = view.stage
        return view

    def reset(self) -> View:
        """A new recording clears previous results, errors and storage."""
        self.store.clear()
        return self._show(View(stage=Stage.IDLE))

    def start_recording(self, stream) -> Recorder:
        """idle → recording. The returned Recorder owns the stream until stop() or teardown."""
        self.reset()
        self.stage = Stage.RECORDING
        self.log.info(SERVICE, "Recording started")
        return Recorder(stream)

    def submit_recording(self, clip) -> View:
        self.reset()
        view = View(stage=Stage.TRANSCRIBING)
        self.log.info(SERVICE, "Recording submitted", metadata={"audioBytes": clip.size if clip else 0})
        try:
            transcript = self._transcribe(clip)
        except ProxyError as e:
            self.log.warn(SERVICE, "Transcription failed", metadata={"error": e.message})
            view.stage = Stage.RECORDED
            view.error = e.message
            return self._show(view)
        if not transcript:
            self.log.warn(SERVICE, "Transcription came back empty")
            view.stage = Stage.RECORDED
            view.error = "No speech was detected in the recording. Please try again."
            return self._show(view)

        record = transition(self.store.load(), Event.TRANSCRIBED, transcript=transcript)
        self.store.save(record)
        view.transcript = transcript
        return self._run_free_analysis(record, view)

    def preview(self) -> View:
        record = self.store.load()
        if not record.transcript:
            return self._show(View(stage=Stage.IDLE, error="No recording found. Please record audio first."))
        view = View(stage=Stage.FREE_ANALYSIS, transcript=record.transcript)
        if record.sentiment is None or record.summary is None:
            return self._run_free_analysis(record, view)
        view.sentiment = record.sentiment
        view.summary = record.summary
        return self._show(view)

    def _run_free_analysis(self, record, view) -> View:
        view.stage = Stage.FREE_ANALYSIS
        try:
            results = self._analyze(FREE_AGENTS, record.transcript)
        except ProxyError as e:
            # no sentiment/summary stored, so the unlock stays unavailable until a retry succeeds
            self.log.warn(SERVICE, "Free analysis failed", metadata={"error": e.message})
            view.error = e.message
            return self._show(view)
        self.store.save(transition(record, Event.PREVIEWED, **results))
        view.sentiment = results.get("sentiment")
        view.summary = results.get("summary")
        self.log.info(SERVICE, "Free analyses completed, mood locked")
        return self._show(view)

    def request_unlock(self, payment_url: str, return_url: str = None) -> View:
        """Mark the payment as pending; the view carries where to navigate. Raises InvalidTransition."""
        record = transition(self.store.load(), Event.UNLOCK_REQUESTED)
        self.store.save(record)
        self.log.info(SERVICE, "Redirecting to payment page", metadata={
            "paymentUrl": payment_url,
            "returnUrl": return_url,
        })
        return self._show(View(
            stage=Stage.AWAITING_PAYMENT,
            transcript=record.transcript,
            sentiment=record.sentiment,
            summary=record.summary,
            payment=record.payment,
            redirect_url=payment_url,
        ))

    def resume(self, query) -> View:
        """Re-entry after the payment redirect, driven by the page's query parameters."""
        if not is_payment_return(query):
            return self._show(View(stage=Stage.IDLE))

        record = self.store.load()
        if not record.transcript or record.payment is not PaymentState.PENDING:
            self.log.warn(SERVICE, "Payment return without a pending transcript", metadata={
                "hasTranscript": bool(record.transcript),
                "payment": record.payment.value,
            })
            return self._show(View(
                stage=Stage.IDLE,
                warning="No pending recording was found for this payment. Mood analysis stays locked.",
                strip_query=True,
            ))

        view = View(
            stage=Stage.RETURNED_PENDING_UNLOCK,
            transcript=record.transcript,
            sentiment=record.sentiment,
            summary=record.summary,
            payment=record.payment,
        )
        try:
            results = self._analyze(PAID_AGENTS, record.transcript)
        except ProxyError as e:
            self.log.warn(SERVICE, "Mood analysis failed after payment", metadata={"error": e.message})
            view.error = e.message
            return self._show(view)

        confirmed = transition(record, Event.PAYMENT_CONFIRMED)
        self.store.clear()
        view.stage = Stage.UNLOCKED
        view.payment = confirmed.payment
        view.mood = results.get("mood")
        view.strip_query = True
        self.log.info(SERVICE, "Mood unlocked, session cleared", metadata={"payment": confirmed.payment.value})
        return self._show(view)
