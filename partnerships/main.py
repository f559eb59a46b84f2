import logging

from fastapi import FastAPI

from .api.partners import router as partners_router
from .api.purchases import router as purchases_router
from .config import settings
from .db import close_db_pool, pool_ready
from .relay.routes import router as relay_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = FastAPI(title="Partnerships Pipeline", version="0.3.0")
app.include_router(relay_router)
app.include_router(partners_router)
app.include_router(purchases_router)

# The pool is opened lazily by the partners API; the relay never needs it.
@app.on_event("shutdown")
async def _shutdown():
    await close_db_pool()

@app.get("/health")
async def health():
    return {
        "ok": True,
        "service": settings.service_name,
        "env": settings.env,
        "db_pool": pool_ready(),
        "webhook_configured": bool(settings.webhook_url),
    }
