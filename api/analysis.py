"""
GPT analysis agents: mood, sentiment, summary.
Each agent is one fixed system prompt + the transcription, one chat completion, one text field back.
Requires: OPENAI_API_KEY
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from api.errors import from_upstream, invalid_request, misconfigured, upstream_details
from api.logger import measure_time, new_request_id
from api.security import MAX_TRANSCRIPT_LENGTH, sanitize_text


@dataclass(frozen=True)
class AgentSpec:
    name: str
    field: str
    service: str
    system_prompt: str
    temperature: float
    max_tokens: int
    fallback: str


MOOD = AgentSpec(
    name="mood",
    field="mood",
    service="MoodAgent",
    system_prompt=(
        "You are a mood analysis expert. Analyze the following transcription and determine the overall mood of the speaker.\n"
        "Consider factors like: tone, word choice, energy level, and emotional indicators.\n"
        "Provide a detailed mood analysis in 2-3 sentences. Be specific about the mood "
        "(e.g., enthusiastic, contemplative, frustrated, excited, calm, anxious, etc.)."
    ),
    temperature=0.7,
    max_tokens=200,
    fallback="Unable to determine mood",
)

SENTIMENT = AgentSpec(
    name="sentiment",
    field="sentiment",
    service="SentimentAgent",
    system_prompt=(
        "You are a sentiment analysis expert specializing in emotional state detection.\n"
        "Analyze the following transcription and determine the speaker's emotional state.\n"
        "Focus on detecting if the speaker is: nervous, happy, sad, angry, fearful, confident, uncertain, or other emotional states.\n"
        "Provide a detailed sentiment analysis in 2-3 sentences with specific emotional indicators you detected."
    ),
    temperature=0.7,
    max_tokens=200,
    fallback="Unable to determine sentiment",
)

SUMMARY = AgentSpec(
    name="summary",
    field="summary",
    service="SummaryAgent",
    system_prompt=(
        "You are an expert at summarizing spoken content.\n"
        "Create a concise, clear summary of the following transcription.\n"
        "Capture the main points, key ideas, and important details.\n"
        "Keep the summary to 2-4 sentences and maintain the speaker's intent."
    ),
    temperature=0.5,
    max_tokens=250,
    fallback="Unable to generate summary",
)

AGENTS = {spec.name: spec for spec in (MOOD, SENTIMENT, SUMMARY)}

FREE_AGENTS = ("sentiment", "summary")
PAID_AGENTS = ("mood",)


def openai_client(settings):
    import openai
    return openai.OpenAI(api_key=settings.openai_api_key)


def run_agent(spec: AgentSpec, transcription, *, settings, log, client=None) -> dict:
    """Run one agent over a transcription. Returns {spec.field: text}; raises ProxyError."""
    request_id = new_request_id(spec.name)
    log.info(spec.service, f"{spec.name.capitalize()} analysis request received", metadata={"requestId": request_id})

    if not settings.openai_configured:
        log.error(spec.service, "API key not configured", metadata={"requestId": request_id})
        raise misconfigured("OpenAI API key not configured")

    if isinstance(transcription, str) and len(transcription) > MAX_TRANSCRIPT_LENGTH:
        log.warn(spec.service, "Transcription truncated", metadata={
            "requestId": request_id,
            "originalLength": len(transcription),
            "maxLength": MAX_TRANSCRIPT_LENGTH,
        })
    text = sanitize_text(transcription) if isinstance(transcription, str) else ""
    if not text:
        log.warn(spec.service, "No transcription provided", metadata={"requestId": request_id})
        raise invalid_request("No transcription provided")

    log.info(spec.service, f"Starting {settings.chat_model} {spec.name} analysis", metadata={
        "requestId": request_id,
        "transcriptionLength": len(text),
    })

    client = client or openai_client(settings)
    try:
        completion, duration = measure_time(
            client.chat.completions.create,
            model=settings.chat_model,
            messages=[
                {"role": "system", "content": spec.system_prompt},
                {"role": "user", "content": text},
            ],
            temperature=spec.temperature,
            max_tokens=spec.max_tokens,
        )
    except Exception as e:
        status, code = upstream_details(e)
        log.error(spec.service, f"{spec.name.capitalize()} analysis failed", exc=e, metadata={
            "requestId": request_id,
            "errorStatus": status,
            "errorCode": code,
        })
        raise from_upstream(e, f"Failed to analyze {spec.name}") from e

    result = _first_choice_text(completion) or spec.fallback
    usage = getattr(completion, "usage", None)
    log.info(spec.service, f"{settings.chat_model} {spec.name} analysis completed", duration, {
        "requestId": request_id,
        "tokensUsed": getattr(usage, "total_tokens", None),
        f"{spec.name}Length": len(result),
    })
    return {spec.field: result}


def _first_choice_text(completion) -> str:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return (getattr(message, "content", None) or "").strip()


def analyze_request(name: str, payload, *, settings, log, client=None) -> dict:
    """Entry point for POST /api/agents/<name> with a decoded JSON body."""
    spec = AGENTS[name]
    if not settings.openai_configured:
        return run_agent(spec, None, settings=settings, log=log, client=client)
    if not isinstance(payload, dict):
        log.warn(spec.service, "Request body is not a JSON object")
        raise invalid_request("No transcription provided")
    return run_agent(spec, payload.get("transcription"), settings=settings, log=log, client=client)


def run_batch(names, transcription, *, settings, log, client=None) -> dict:
    """Run several agents concurrently and merge their fields. Any failure fails the batch."""
    specs = [AGENTS[n] for n in names]
    with ThreadPoolExecutor(max_workers=len(specs) or 1) as pool:
        futures = [
            pool.submit(run_agent, spec, transcription, settings=settings, log=log, client=client)
            for spec in specs
        ]
        merged = {}
        for future in futures:
            merged.update(future.result())
    return merged
