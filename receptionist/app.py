"""FastAPI application — Twilio voice webhooks, TTS, transcripts and live view.

Endpoints:

  POST /welcome?mode=...      Call start: greet inside a speech <Gather>
  POST /handle-input          First answer after the greeting
  POST /handle-followup       Every later turn
  GET  /tts                   ElevenLabs audio for a <Play> URL
  GET  /calls                 Recent calls (admin)
  GET  /transcript/{sid}      Transcript of one call (admin)
  GET  /call-summary/{sid}    LLM summary of one call (admin)
  GET  /live/{sid}            Server-Sent Events stream of transcript lines
  GET  /ui/{sid}              Live transcript page
  GET  /api/sessions[/{sid}]  Dialogue session state (admin)
  GET  /api/config            Runtime toggles (admin; POST to update)
  GET  /health                Health check

The Twilio flow:
  1. Incoming call hits POST /welcome
  2. We answer with TwiML: <Gather input="speech"> playing /tts audio
  3. Twilio posts the SpeechResult to the Gather action
  4. CallService.process_turn produces the reply; we either keep
     gathering, <Dial> the agent line, or <Hangup/>
"""

from __future__ import annotations

# Load .env into os.environ early; the OpenAI SDK also reads
# OPENAI_API_KEY from the environment.
from dotenv import load_dotenv
load_dotenv()

import asyncio
import html
import json
import logging
import time
from typing import AsyncIterator, Awaitable, Callable

# Configure root logger early so all receptionist.* loggers have a handler
# and are visible when run via `uvicorn receptionist.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response, StreamingResponse

from receptionist.auth import require_admin_token
from receptionist.calls import CallService, build_service
from receptionist.config import runtime_settings, settings
from receptionist.models import Mode
from receptionist.twiml import VoiceResponse, tts_url

log = logging.getLogger("receptionist.app")

_START_TIME = time.time()

KEEPALIVE_SECONDS = 15.0


def create_app(service: CallService | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if service is None:
        for warning in settings.validate_startup():
            log.warning(warning)
        service = build_service(settings)

    app = FastAPI(
        title="Voice Receptionist",
        description="Telephony assistant: hospital appointment booking and knowledge-base Q&A",
        version="0.1.0",
    )
    app.state.service = service
    admin = [Depends(require_admin_token)]

    # ── TwiML helpers ──────────────────────────────────────────

    def _play(verb, call_id: str, text: str) -> None:
        verb.play(tts_url(settings.base_url, text, service.language_tag(call_id)))

    def _gather(resp: VoiceResponse, call_id: str, action: str):
        return resp.gather(
            input="speech",
            bargeIn=True,
            language=service.language_tag(call_id),
            speechTimeout="auto",
            timeout=settings.gather_timeout,
            actionOnEmptyResult=True,
            action=f"{settings.base_url.rstrip('/')}{action}",
            method="POST",
        )

    def _twiml(resp: VoiceResponse) -> Response:
        return Response(content=resp.to_xml(), media_type="application/xml")

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return f"Voice receptionist is running (MODE={settings.mode})"

    # ── Twilio voice webhooks ──────────────────────────────────

    @app.post("/welcome")
    async def welcome(request: Request) -> Response:
        """Start of call: reset the session and greet inside a speech Gather."""
        form = await request.form()
        call_id = str(form.get("CallSid", ""))
        resp = VoiceResponse()
        try:
            mode = Mode.parse(request.query_params.get("mode"))
            _, greeting = service.start_call(
                call_id, mode=mode, caller=form.get("From"), callee=form.get("To"),
            )
            _play(_gather(resp, call_id, "/handle-input"), call_id, greeting)
        except Exception as e:
            log.error("/welcome error for %s: %s", call_id, e, exc_info=True)
            resp = VoiceResponse()
            resp.say("Sorry, something went wrong. Please try again.")
            resp.hangup()
        return _twiml(resp)

    async def _handle_turn(request: Request, followup: bool) -> Response:
        form = await request.form()
        call_id = str(form.get("CallSid", ""))
        speech = str(form.get("SpeechResult", "") or "").strip()
        resp = VoiceResponse()
        try:
            if not speech:
                text, give_up = await service.no_speech(call_id)
                if give_up:
                    _play(resp, call_id, text)
                    resp.hangup()
                else:
                    _play(_gather(resp, call_id, "/handle-followup"), call_id, text)
                return _twiml(resp)

            if followup and service.is_goodbye(call_id, speech):
                service.transcripts.append(call_id, "user", speech)
                _play(resp, call_id, service.goodbye(call_id))
                resp.hangup()
                service.end_call(call_id)
                return _twiml(resp)

            result = await service.process_turn(call_id, speech)

            if result.transfer:
                _play(resp, call_id, result.spoken_text)
                if not settings.agent_number:
                    _play(resp, call_id, service.transfer_unavailable(call_id))
                    resp.hangup()
                else:
                    resp.dial(settings.agent_number)
                return _twiml(resp)

            followup_text = service.followup_prompt(call_id)
            if followup_text:
                _play(resp, call_id, result.spoken_text)
                _play(_gather(resp, call_id, "/handle-followup"), call_id, followup_text)
            else:
                _play(_gather(resp, call_id, "/handle-followup"), call_id, result.spoken_text)
            return _twiml(resp)
        except Exception as e:
            log.error("Turn failed for %s: %s", call_id, e, exc_info=True)
            resp = VoiceResponse()
            _play(resp, call_id, service.technical_issue(call_id))
            resp.hangup()
            return _twiml(resp)

    @app.post("/handle-input")
    async def handle_input(request: Request) -> Response:
        return await _handle_turn(request, followup=False)

    @app.post("/handle-followup")
    async def handle_followup(request: Request) -> Response:
        return await _handle_turn(request, followup=True)

    # ── Text to speech ─────────────────────────────────────────

    @app.get("/tts")
    async def tts(text: str = "", lang: str = "en-IN") -> Response:
        try:
            audio = await service.tts.synthesize(text, lang)
        except Exception as e:
            log.error("/tts failed: %s", e)
            return PlainTextResponse("TTS failed", status_code=500)
        return Response(
            content=audio,
            media_type="audio/mpeg",
            headers={"Cache-Control": "no-store"},
        )

    # ── Transcripts ────────────────────────────────────────────

    @app.get("/calls", dependencies=admin)
    async def list_calls() -> JSONResponse:
        calls = service.transcripts.recent_calls()
        return JSONResponse({"count": len(calls), "calls": calls})

    @app.get("/transcript/{call_sid}", dependencies=admin)
    async def get_transcript(call_sid: str) -> JSONResponse:
        transcript = service.transcripts.transcript(call_sid)
        if not transcript:
            return JSONResponse({"error": "No transcript found", "callSid": call_sid}, status_code=404)
        return JSONResponse({
            "callSid": call_sid,
            **service.transcripts.meta(call_sid),
            "transcript": transcript,
        })

    @app.get("/call-summary/{call_sid}", dependencies=admin)
    async def call_summary(call_sid: str) -> JSONResponse:
        transcript = service.transcripts.transcript(call_sid)
        if not transcript:
            return JSONResponse({"error": "No transcript found", "callSid": call_sid}, status_code=404)
        try:
            summary = await service.summarize(call_sid)
        except Exception as e:
            log.error("Summary failed for %s: %s", call_sid, e)
            return JSONResponse({"error": "Summary failed", "callSid": call_sid}, status_code=502)
        if summary is None:
            return JSONResponse({"error": "Summaries are not configured", "callSid": call_sid}, status_code=503)
        return JSONResponse({
            "callSid": call_sid,
            **service.transcripts.meta(call_sid),
            "summary": summary,
            "transcript": transcript,
        })

    # ── Live view ──────────────────────────────────────────────

    @app.get("/live/{call_sid}")
    async def live(call_sid: str, request: Request) -> StreamingResponse:
        return StreamingResponse(
            live_events(service, call_sid, request.is_disconnected),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
        )

    @app.get("/ui/{call_sid}", response_class=HTMLResponse)
    async def live_ui(call_sid: str) -> HTMLResponse:
        return HTMLResponse(content=LIVE_PAGE.replace("{call_sid}", html.escape(call_sid)))

    # ── Session inspection / runtime config ────────────────────

    @app.get("/api/sessions", dependencies=admin)
    async def list_sessions() -> JSONResponse:
        sessions = [s.model_dump(mode="json") for s in service.store.all()]
        return JSONResponse({"sessions": sessions, "count": len(sessions)})

    @app.get("/api/sessions/{call_sid}", dependencies=admin)
    async def get_session(call_sid: str) -> JSONResponse:
        if call_sid not in service.store:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(service.store.get(call_sid).model_dump(mode="json"))

    @app.get("/api/config", dependencies=admin)
    async def get_config() -> JSONResponse:
        return JSONResponse(runtime_settings)

    @app.post("/api/config", dependencies=admin)
    async def update_config(request: Request) -> JSONResponse:
        body = await request.json()
        for key in body:
            if key in runtime_settings:
                runtime_settings[key] = body[key]
        log.info("Config updated: %s", runtime_settings)
        return JSONResponse(runtime_settings)

    return app


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def live_events(
    service: CallService,
    call_sid: str,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    """``init`` with the transcript so far, then one event per new line."""
    queue = service.hub.get(call_sid).subscribe()
    try:
        yield _sse({"type": "init", "callSid": call_sid, "transcript": service.transcripts.transcript(call_sid)})
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield _sse(event)
    finally:
        service.hub.release(call_sid, queue)


LIVE_PAGE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Live Transcript - {call_sid}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
    body{font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial; padding:16px; background:#fafafa;}
    #wrap{max-width:980px; margin:0 auto;}
    .card{background:#fff; border:1px solid #eee; border-radius:14px; padding:14px;}
    .pill{background:#f1f5f9; padding:6px 10px; border-radius:999px; display:inline-block;}
    .row{padding:10px 12px; border-bottom:1px solid #f0f0f0;}
    .u{background:#f7fbff;} .a{background:#f7fff7;}
    .ts{color:#666; font-size:12px;} .role{font-weight:800; margin-right:8px;}
  </style>
</head>
<body>
  <div id="wrap">
    <div class="card">
      <div style="font-size:18px; font-weight:800;">Live Transcript</div>
      <div style="margin-top:6px;">
        <span class="pill"><b>CallSid:</b> {call_sid}</span>
        <span class="pill" id="status">Connecting…</span>
      </div>
    </div>
    <div class="card" id="log" style="margin-top:12px;"></div>
  </div>
<script>
  const log = document.getElementById('log');
  const statusEl = document.getElementById('status');
  function esc(s){
    return String(s||'').replace(/[&<>"']/g, m => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[m]));
  }
  function addLine(item){
    const div = document.createElement('div');
    div.className = 'row ' + (item.role === 'user' ? 'u' : 'a');
    div.innerHTML = '<div class="ts">'+esc(item.ts)+'</div>' +
      '<div><span class="role">'+esc(item.role.toUpperCase())+':</span><span>'+esc(item.content)+'</span></div>';
    log.appendChild(div);
    window.scrollTo(0, document.body.scrollHeight);
  }
  const es = new EventSource('/live/' + encodeURIComponent('{call_sid}'));
  es.onopen = () => statusEl.textContent = 'Live connected';
  es.onerror = () => statusEl.textContent = 'Disconnected (refresh page)';
  es.onmessage = (e) => {
    const msg = JSON.parse(e.data);
    if (msg.type === 'init') { log.innerHTML = ''; (msg.transcript || []).forEach(addLine); }
    if (msg.type === 'transcript') addLine(msg.item);
  };
</script>
</body>
</html>
"""


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "receptionist.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
