"""
Recording → preview → payment → unlock flow, driven through RecordingFlow with an in-memory store.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.errors import ErrorKind, ProxyError, invalid_request
from api.logger import LogSink
from api.recording import AudioClip, Recorder
from api.session import (
    EMPTY, Event, InvalidTransition, MemoryStore, PaymentState, RecordingFlow, SessionRecord, Stage, transition,
)

PAID = {"session_id": "cs_test_a1B2c3"}


class FakeStream:
    def __init__(self):
        self.released = 0

    def release(self):
        self.released += 1


class FakeServices:
    """Stands in for the transcription and analysis proxies; records every call."""

    def __init__(self, transcript="I am thrilled about this launch"):
        self.transcript = transcript
        self.transcribed = []
        self.analyzed = []
        self.fail_on = set()

    def transcribe(self, clip):
        self.transcribed.append(clip)
        if "transcribe" in self.fail_on:
            raise ProxyError(ErrorKind.UPSTREAM_FAILURE, "Whisper unavailable")
        if clip is None or not clip.data:
            raise invalid_request("No audio file provided")
        return self.transcript

    def analyze(self, names, transcript):
        self.analyzed.append(tuple(names))
        if self.fail_on.intersection(names):
            raise ProxyError(ErrorKind.UPSTREAM_FAILURE, "GPT unavailable")
        return {name: f"{name} of: {transcript}" for name in names}


@pytest.fixture
def services():
    return FakeServices()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def flow(store, services, tmp_path):
    return RecordingFlow(store, transcribe=services.transcribe, analyze=services.analyze, log=LogSink(str(tmp_path)))


def pending_store(transcript="I am thrilled about this launch"):
    return MemoryStore(SessionRecord(transcript=transcript, payment=PaymentState.PENDING, sentiment="s", summary="m"))


# ═══════════════════════════════════════════════
# 1. RECORDING
# ═══════════════════════════════════════════════

class TestRecorder:
    def test_zero_chunks_gives_empty_clip_and_flow_reaches_transcription(self, flow, services):
        stream = FakeStream()
        recorder = flow.start_recording(stream)
        assert flow.stage is Stage.RECORDING
        clip = recorder.stop()
        assert clip.size == 0
        assert stream.released == 1

        view = flow.submit_recording(clip)
        assert services.transcribed == [clip]
        assert view.stage is Stage.RECORDED
        assert view.error == "No audio file provided"

    def test_chunks_are_joined(self):
        with Recorder(FakeStream(), "audio/ogg;codecs=opus") as rec:
            rec.add_chunk(b"ab")
            rec.add_chunk(b"")
            rec.add_chunk(b"cd")
            clip = rec.stop()
        assert clip.data == b"abcd"
        assert clip.mime_type == "audio/ogg"
        assert clip.filename == "recording.ogg"

    def test_stream_released_on_error_path(self):
        stream = FakeStream()
        with pytest.raises(ValueError):
            with Recorder(stream) as rec:
                rec.add_chunk(b"x")
                raise ValueError("capture failed")
        assert stream.released == 1

    def test_release_is_idempotent(self):
        stream = FakeStream()
        rec = Recorder(stream)
        rec.stop()
        rec.release()
        assert stream.released == 1
        with pytest.raises(RuntimeError):
            rec.add_chunk(b"late")

    def test_from_chunks_with_nothing(self):
        assert AudioClip.from_chunks([]).data == b""


# ═══════════════════════════════════════════════
# 2. TRANSCRIPTION + FREE PREVIEW
# ═══════════════════════════════════════════════

class TestPreview:
    def test_submit_persists_transcript_and_runs_free_agents(self, flow, store, services):
        view = flow.submit_recording(AudioClip(b"webm"))
        assert view.stage is Stage.FREE_ANALYSIS
        assert view.transcript == services.transcript
        assert view.sentiment.startswith("sentiment of:")
        assert view.summary.startswith("summary of:")
        assert view.mood_locked
        assert services.analyzed == [("sentiment", "summary")]

        record = store.load()
        assert record.transcript == services.transcript
        assert record.payment is PaymentState.NONE

    def test_free_failure_keeps_transcript(self, flow, store, services):
        services.fail_on.add("summary")
        view = flow.submit_recording(AudioClip(b"webm"))
        assert view.error == "GPT unavailable"
        assert view.transcript == services.transcript
        assert view.sentiment is None and view.summary is None
        assert store.load().transcript == services.transcript

    def test_transcription_failure_stores_nothing(self, flow, store, services):
        services.fail_on.add("transcribe")
        view = flow.submit_recording(AudioClip(b"webm"))
        assert view.error == "Whisper unavailable"
        assert store.load() == EMPTY
        assert services.analyzed == []

    def test_empty_transcript_is_reported(self, flow, store, services):
        services.transcript = ""
        view = flow.submit_recording(AudioClip(b"webm"))
        assert view.stage is Stage.RECORDED
        assert "No speech" in view.error
        assert store.load() == EMPTY

    def test_new_recording_clears_previous_results(self, store, services, tmp_path):
        store.save(SessionRecord(transcript="old", payment=PaymentState.PENDING, sentiment="old", summary="old"))
        flow = RecordingFlow(store, services.transcribe, services.analyze, LogSink(str(tmp_path)))
        flow.start_recording(FakeStream())
        assert store.load() == EMPTY

    def test_preview_reuses_stored_results(self, flow, store, services):
        flow.submit_recording(AudioClip(b"webm"))
        services.analyzed.clear()
        view = flow.preview()
        assert view.sentiment.startswith("sentiment of:")
        assert services.analyzed == []

    def test_preview_without_transcript(self, flow):
        view = flow.preview()
        assert view.stage is Stage.IDLE
        assert view.error


# ═══════════════════════════════════════════════
# 3. PAYMENT AND RETURN
# ═══════════════════════════════════════════════

class TestPaymentReturn:
    def test_unlock_sets_pending_flag(self, flow, store):
        flow.submit_recording(AudioClip(b"webm"))
        view = flow.request_unlock("https://buy.stripe.com/test_link", "http://localhost:5001/result")
        assert view.redirect_url == "https://buy.stripe.com/test_link"
        assert view.stage is flow.stage is Stage.AWAITING_PAYMENT
        assert store.load().payment is PaymentState.PENDING
        with open(flow.log.log_file, encoding="utf-8") as f:
            assert '"returnUrl": "http://localhost:5001/result"' in f.read()

    def test_unlock_refused_until_free_preview_succeeds(self, flow, store, services):
        services.fail_on.add("sentiment")
        view = flow.submit_recording(AudioClip(b"webm"))
        assert view.error == "GPT unavailable"
        assert not view.can_unlock
        with pytest.raises(InvalidTransition):
            flow.request_unlock("https://buy.stripe.com/test_link")
        assert store.load().payment is PaymentState.NONE

        services.fail_on.clear()
        assert flow.preview().can_unlock
        flow.request_unlock("https://buy.stripe.com/test_link")
        assert store.load().payment is PaymentState.PENDING

    def test_unlock_without_transcript_is_rejected(self, flow, store):
        with pytest.raises(InvalidTransition):
            flow.request_unlock("https://buy.stripe.com/test_link")
        assert store.load() == EMPTY

    def test_return_with_empty_storage_makes_no_call(self, flow, services, tmp_path):
        view = flow.resume(PAID)
        assert services.analyzed == []
        assert view.mood_locked
        assert view.warning
        with open(flow.log.log_file, encoding="utf-8") as f:
            assert "[WARN] [SessionFlow] Payment return without a pending transcript" in f.read()

    def test_return_with_transcript_but_no_flag_makes_no_call(self, services, tmp_path):
        store = MemoryStore(SessionRecord(transcript="hi"))
        flow = RecordingFlow(store, services.transcribe, services.analyze, LogSink(str(tmp_path)))
        view = flow.resume(PAID)
        assert services.analyzed == []
        assert view.mood_locked
        assert store.load().transcript == "hi"

    def test_return_unlocks_mood_once_and_clears_storage(self, services, tmp_path):
        store = pending_store()
        flow = RecordingFlow(store, services.transcribe, services.analyze, LogSink(str(tmp_path)))

        view = flow.resume(PAID)
        assert services.analyzed == [("mood",)]
        assert view.stage is Stage.UNLOCKED
        assert view.payment is PaymentState.CONFIRMED
        assert view.mood == "mood of: I am thrilled about this launch"
        assert (view.sentiment, view.summary) == ("s", "m")
        assert view.strip_query
        assert store.load() == EMPTY

        # reload with the query stripped
        again = flow.resume({})
        assert again.stage is Stage.IDLE
        # a stale reload that still carries the marker
        stale = flow.resume(PAID)
        assert stale.mood_locked
        assert services.analyzed == [("mood",)]

    def test_payment_success_param_is_a_marker(self, services, tmp_path):
        flow = RecordingFlow(pending_store(), services.transcribe, services.analyze, LogSink(str(tmp_path)))
        assert flow.resume({"payment": "success"}).stage is Stage.UNLOCKED

    def test_malformed_session_id_is_ignored(self, services, tmp_path):
        store = pending_store()
        flow = RecordingFlow(store, services.transcribe, services.analyze, LogSink(str(tmp_path)))
        view = flow.resume({"session_id": "<script>"})
        assert view.stage is Stage.IDLE
        assert services.analyzed == []
        assert store.load().payment is PaymentState.PENDING

    def test_mood_failure_keeps_results_and_storage(self, services, tmp_path):
        store = pending_store()
        services.fail_on.add("mood")
        flow = RecordingFlow(store, services.transcribe, services.analyze, LogSink(str(tmp_path)))
        view = flow.resume(PAID)
        assert view.error == "GPT unavailable"
        assert view.transcript and view.sentiment == "s"
        assert view.mood_locked
        assert store.load().payment is PaymentState.PENDING


# ═══════════════════════════════════════════════
# 4. TRANSITIONS
# ═══════════════════════════════════════════════

class TestTransition:
    def test_happy_path(self):
        record = transition(EMPTY, Event.TRANSCRIBED, transcript="hello")
        record = transition(record, Event.PREVIEWED, sentiment="s", summary="m")
        record = transition(record, Event.UNLOCK_REQUESTED)
        assert record.payment is PaymentState.PENDING
        record = transition(record, Event.PAYMENT_CONFIRMED)
        assert record.payment is PaymentState.CONFIRMED
        assert transition(record, Event.CLEARED) == EMPTY

    @pytest.mark.parametrize("event", [Event.PREVIEWED, Event.UNLOCK_REQUESTED, Event.PAYMENT_CONFIRMED])
    def test_requires_transcript(self, event):
        with pytest.raises(InvalidTransition):
            transition(EMPTY, event)

    def test_unlock_requires_free_results(self):
        with pytest.raises(InvalidTransition):
            transition(SessionRecord(transcript="hi", sentiment="s"), Event.UNLOCK_REQUESTED)

    def test_confirm_requires_pending(self):
        with pytest.raises(InvalidTransition):
            transition(SessionRecord(transcript="hi"), Event.PAYMENT_CONFIRMED)

    def test_record_round_trips_through_storage_dict(self):
        record = SessionRecord(transcript="hi", payment=PaymentState.PENDING, sentiment="s")
        assert SessionRecord.from_dict(record.to_dict()) == record

    def test_garbage_storage_reads_as_empty(self):
        assert SessionRecord.from_dict("nope") == EMPTY
        assert SessionRecord.from_dict({"transcript": "hi", "payment": "bogus"}).payment is PaymentState.NONE
