import asyncio
import mimetypes
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Form, Request, HTTPException
from fastapi.responses import JSONResponse, Response
from dotenv import load_dotenv

from app.config import Settings, settings
from app.cache.lru import BoundedCache
from app.conversation_handler import ConversationHandler
from app.errors import ImagePathError
from app.formatters.whatsapp import GENERIC_ERROR, format_rate_limited
from app.infrastructure.resilience import HealthChecker, RateLimiter, RequestValidator, probe_redis
from app.obs.context import message_sid_var, user_var
from app.obs.logger import log_event
from app.obs.metrics import get_metrics_snapshot
from app.obs.middleware import ObservabilityMiddleware
from app.quiz.engine import QuizEngine
from app.quiz.images import ImageService
from app.quiz.questions import QuestionBank
from app.session.store import SessionStore
from app.session.sweeper import run_periodic_sweep
from app.utils.twilio import build_media_url, is_valid_twilio_request, to_twiml_message

load_dotenv()


def create_app(cfg: Settings = settings, question_bank: Optional[QuestionBank] = None) -> FastAPI:
    """Build the service. Every store and cache is owned by this app instance."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_event("startup", app_env=cfg.APP_ENV)
        state = app.state
        state.ready = False
        state.cfg = cfg

        state.questions = question_bank or QuestionBank.from_file(cfg.QUESTIONS_PATH)
        state.images = ImageService(cfg.IMAGES_BASE_PATH, max_cache_mb=cfg.IMAGE_CACHE_MAX_MB)
        state.sessions = SessionStore(ttl_minutes=cfg.SESSION_TTL_MINUTES, max_sessions=cfg.MAX_SESSIONS)
        state.last_tickets = BoundedCache(max_size=cfg.CACHE_MAX_ENTRIES)

        # Redis is probed once; without it each worker rate-limits on its own
        state.redis = probe_redis(cfg.REDIS_URL)
        state.rate_limiter = RateLimiter(
            max_requests=cfg.RATE_LIMIT_REQUESTS,
            window_seconds=cfg.RATE_LIMIT_WINDOW_SECONDS,
            redis_client=state.redis,
        )

        state.engine = QuizEngine(state.sessions, state.questions, images=state.images)
        state.conversation = ConversationHandler(
            engine=state.engine,
            last_tickets=state.last_tickets,
            images=state.images,
            ticket_count=cfg.TICKET_COUNT,
            stats_provider=lambda: collect_stats(app),
        )

        state.health = HealthChecker()
        state.health.register_check("questions", lambda: state.questions.is_loaded, 0)
        if state.redis is not None:
            state.health.register_check("redis", state.redis.ping, 30)

        sweeper = asyncio.create_task(
            run_periodic_sweep(state.sessions, cfg.SESSION_SWEEP_INTERVAL_SECONDS, state.rate_limiter)
        )
        state.ready = True
        log_event(
            "ready",
            session_ttl_minutes=cfg.SESSION_TTL_MINUTES,
            max_sessions=cfg.MAX_SESSIONS,
            rate_limit=f"{cfg.RATE_LIMIT_REQUESTS}/{cfg.RATE_LIMIT_WINDOW_SECONDS}s",
            rate_limit_backend=state.rate_limiter.backend,
        )

        yield

        state.ready = False
        log_event("shutdown")
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        if state.redis is not None:
            state.redis.close()

    app = FastAPI(title="WhatsApp Ticket Quiz Bot", version="1.0.0", lifespan=lifespan)

    @app.get("/")
    async def root():
        return {
            "service": "WhatsApp Ticket Quiz Bot",
            "version": "1.0.0",
            "status": "running",
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "ticket-quiz-bot"}

    @app.get("/ready")
    async def ready(request: Request):
        if getattr(request.app.state, "ready", False):
            return {"status": "ready"}
        return JSONResponse({"status": "not_ready"}, status_code=503)

    @app.get("/health/detailed")
    async def detailed_health(request: Request):
        results = await request.app.state.health.run_checks()
        status_code = 200 if results["status"] == "healthy" else 503
        return JSONResponse(results, status_code=status_code)

    @app.get("/metrics")
    async def metrics():
        return get_metrics_snapshot()

    @app.get("/stats")
    async def stats(request: Request):
        return collect_stats(request.app)

    @app.get("/images/{image_path:path}")
    async def image(request: Request, image_path: str):
        try:
            data = request.app.state.images.get_image(image_path)
        except ImagePathError:
            raise HTTPException(status_code=404, detail="Image not found")
        if data is None:
            raise HTTPException(status_code=404, detail="Image not found")
        media_type = mimetypes.guess_type(image_path)[0] or "application/octet-stream"
        return Response(content=data, media_type=media_type)

    @app.post("/whatsapp/webhook")
    async def whatsapp_webhook(
        request: Request,
        Body: str = Form(...),
        From: str = Form(...),
        To: str = Form(...),
        MessageSid: str | None = Form(None),
    ):
        valid, error = RequestValidator.validate_whatsapp_message({
            "Body": Body,
            "From": From,
            "To": To,
        })
        if not valid:
            raise HTTPException(status_code=400, detail=error)

        form = await request.form()
        signature = request.headers.get("X-Twilio-Signature")
        if not is_valid_twilio_request(cfg.TWILIO_AUTH_TOKEN, str(request.url), dict(form), signature):
            raise HTTPException(status_code=403, detail="Invalid Twilio signature")

        user_id = From.replace("whatsapp:", "")
        user_var.set(user_id)
        message_sid_var.set(MessageSid)
        log_event("webhook_received", message_length=len(Body))

        state = request.app.state
        allowed, limit_info = state.rate_limiter.check_rate_limit(f"user:{user_id}")
        if not allowed:
            log_event("rate_limited", level="WARNING", retry_after=limit_info["retry_after"])
            xml = to_twiml_message(format_rate_limited(limit_info["retry_after"]))
            return Response(content=xml, media_type="text/xml")

        media_url = None
        try:
            reply = state.conversation.handle_message(user_id=user_id, message=Body)
            text = reply.text
            if reply.image_path:
                media_url = build_media_url(cfg.PUBLIC_BASE_URL, reply.image_path)
        except Exception as e:
            log_event("webhook_error", level="ERROR", error=f"{type(e).__name__}: {e}")
            text = GENERIC_ERROR

        return Response(content=to_twiml_message(text, media_url), media_type="text/xml")

    @app.post("/admin/user/{user_id}/reset")
    async def reset_user(request: Request, user_id: str):
        """Admin endpoint to drop a user's quiz session"""
        removed = request.app.state.conversation.reset_user(user_id)
        return {"status": "reset" if removed else "no_session", "user_id": user_id}

    return app


def collect_stats(app: FastAPI) -> dict:
    state = app.state
    return {
        "sessions": state.sessions.stats(),
        "questions": state.questions.stats(),
        "images": state.images.stats(),
        "last_tickets": state.last_tickets.stats(),
        "rate_limit": state.rate_limiter.stats(),
    }


api = create_app()
app = ObservabilityMiddleware(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.APP_ENV == "dev",
        log_level="info"
    )
