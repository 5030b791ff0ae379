# opti_api/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from opti_api.config import settings
from opti_api.core.db import init_db, close_db
from opti_api.core.bootstrap import ensure_default_admin
from opti_api.core.errors import register_exception_handlers
from opti_api.services.otp_ledger import otp_sweeper

from opti_api.api.v1.routers import auth, admin, users

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (bearer tokens, but allow credentials for the browser client)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

@app.on_event("startup")
async def on_startup():
    await init_db()
    # Ensure there's a default superadmin on first run
    await ensure_default_admin()
    # Periodic purge of expired OTP records
    otp_sweeper.start()
    logger.info("[startup] %s ready (env=%s)", settings.APP_NAME, settings.env)

@app.on_event("shutdown")
async def on_shutdown():
    await otp_sweeper.stop()
    await close_db()

# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")

@app.get("/healthz")
def healthz():
    return {"ok": True}
