# progresspath/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .schemas import HealthOutput
from .scheduler import DailyQuotesScheduler
from .settings import settings
from .store import store_ok

BUILD = settings.BUILD_TAG

app = FastAPI(title="progresspath-backend", version=BUILD)

# CORS origins: env-based + local defaults
ALLOWED_ORIGINS = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()] or [
    "https://progresspath.vercel.app",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

scheduler = DailyQuotesScheduler(settings)


@app.on_event("startup")
async def startup():
    # Log critical env vars (not secrets)
    sb_url = settings.SUPABASE_URL or ""
    print(f"[startup] SUPABASE_URL={sb_url[:50]}..." if len(sb_url) > 50 else f"[startup] SUPABASE_URL={sb_url}")
    print(f"[startup] generation key present={bool(settings.GENERATION_SERVICE_KEY)} cron secret present={bool(settings.CRON_SECRET)}")

    # NOTE: No ensure_schema() - Supabase schema is managed manually
    scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    scheduler.stop()


# Routers (REGISTER AT IMPORT TIME - not in startup)
from .cron_api import router as cron_router  # noqa: E402
from .quotes_api import router as quotes_router  # noqa: E402

app.include_router(cron_router)
app.include_router(quotes_router)


@app.get("/healthz", response_model=HealthOutput)
def healthz():
    routes = [r.path for r in app.router.routes if hasattr(r, "path")]
    return HealthOutput(store=store_ok(), build=BUILD, routes=routes)
