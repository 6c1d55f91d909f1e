"""
Voice Insight local dev server: serves the pages + API routes.
Set env: OPENAI_API_KEY, FLASK_SECRET_KEY, PAYMENT_LINK_URL (optional), STRIPE_SECRET_KEY (optional), SESSION_DB (optional).
Run: python server.py  →  http://127.0.0.1:5001/
"""
import os
import pathlib
import secrets

from dotenv import load_dotenv

load_dotenv(dotenv_path=pathlib.Path(__file__).resolve().parent / ".env")

from flask import Flask, jsonify, redirect, render_template, request, session

from api.analysis import AGENTS, analyze_request, run_batch
from api.config import load_settings
from api.errors import ProxyError
from api.logger import LogSink
from api.payments import create_checkout, handle_webhook
from api.recording import AudioClip
from api.security import SECURITY_HEADERS
from api.session import STORAGE_KEY, InvalidTransition, RecordingFlow, SessionRecord, Stage, View
from api.storage import SessionStorage
from api.transcription import transcribe_audio

SETTINGS = load_settings()

app = Flask(__name__, static_folder="static", static_url_path="/static")
app.secret_key = SETTINGS.secret_key or secrets.token_hex(32)
app.config["MAX_CONTENT_LENGTH"] = 26 * 1024 * 1024
log = LogSink(SETTINGS.log_dir)
storage = SessionStorage(SETTINGS.session_db)


# ── Security headers ──

@app.after_request
def add_security_headers(response):
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


@app.errorhandler(ProxyError)
def proxy_error(e):
    return jsonify(e.to_body()), e.status


# ── Session flow wiring ──

class FlaskSessionStore:
    """The cookie carries only an opaque id; the SessionRecord itself sits in SQLite."""

    def __init__(self, storage: SessionStorage):
        self.storage = storage

    def _session_id(self, create=False):
        session_id = session.get(STORAGE_KEY)
        if not isinstance(session_id, str):
            session_id = None
        if session_id is None and create:
            session_id = session[STORAGE_KEY] = secrets.token_urlsafe(24)
        return session_id

    def load(self) -> SessionRecord:
        session_id = self._session_id()
        return SessionRecord.from_dict(self.storage.get(session_id) if session_id else None)

    def save(self, record: SessionRecord):
        self.storage.put(self._session_id(create=True), record.to_dict())

    def clear(self):
        session_id = self._session_id()
        if session_id:
            self.storage.delete(session_id)


def _transcribe_text(clip) -> str:
    result = transcribe_audio(clip, settings=load_settings(), log=log)
    return result["transcription"]


def _analyze(names, transcript) -> dict:
    return run_batch(names, transcript, settings=load_settings(), log=log)


def get_flow() -> RecordingFlow:
    return RecordingFlow(FlaskSessionStore(storage), transcribe=_transcribe_text, analyze=_analyze, log=log)


# --- Page routes ---

@app.route("/")
def index():
    return render_template("index.html", view=View())


@app.route("/prepay", methods=["GET", "POST"])
def prepay():
    flow = get_flow()
    if request.method == "POST":
        upload = request.files.get("audio")
        clip = AudioClip.from_upload(upload) if upload else None
        view = flow.submit_recording(clip)
    else:
        view = flow.preview()
    if view.transcript is None:
        return render_template("index.html", view=view), 400 if view.stage is Stage.RECORDED else 200
    return render_template("prepay.html", view=view)


@app.route("/unlock", methods=["POST"])
def unlock():
    settings = load_settings()
    try:
        view = get_flow().request_unlock(settings.payment_link_url, f"{settings.app_url}/result")
    except InvalidTransition as e:
        record = FlaskSessionStore(storage).load()
        if not record.transcript:
            return render_template("index.html", view=View(error=str(e))), 400
        view = View(stage=Stage.FREE_ANALYSIS, transcript=record.transcript,
                    sentiment=record.sentiment, summary=record.summary, error=str(e))
        return render_template("prepay.html", view=view), 400
    return redirect(view.redirect_url, code=303)


@app.route("/result")
def result():
    view = get_flow().resume(request.args)
    return render_template("result.html", view=view)


# --- API routes ---

@app.route("/api/transcribe", methods=["POST"])
def api_transcribe():
    settings = load_settings()
    clip = None
    if settings.openai_configured:
        upload = request.files.get("audio")
        clip = AudioClip.from_upload(upload) if upload and upload.filename else None
    return jsonify(transcribe_audio(clip, settings=settings, log=log))


@app.route("/api/agents/<name>", methods=["POST"])
def api_agent(name):
    if name not in AGENTS:
        return jsonify({"error": "Unknown agent"}), 404
    settings = load_settings()
    payload = request.get_json(force=True, silent=True) if settings.openai_configured else None
    return jsonify(analyze_request(name, payload, settings=settings, log=log))


@app.route("/api/stripe/create-checkout", methods=["POST"])
def api_create_checkout():
    status, body = create_checkout(load_settings(), log)
    return jsonify(body), status


@app.route("/api/stripe/webhook", methods=["POST"])
def api_webhook():
    status, body = handle_webhook(load_settings(), log)
    return jsonify(body), status


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    print(f"Voice Insight running at http://127.0.0.1:{port}/")
    if not SETTINGS.openai_configured:
        print("WARNING: OPENAI_API_KEY not set in .env — transcription and analysis will fail.")
    if not SETTINGS.secret_key:
        print("WARNING: FLASK_SECRET_KEY not set — sessions reset when the server restarts.")
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() == "true")
