import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from setup_wizard.api.v1.sessions import router as sessions_router
from setup_wizard.core.config import settings
from setup_wizard.wiring.dependencies import close_resources

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("session_id", "plan_type", "step_key", "field_key", "generation", "reason"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_resources()


app = FastAPI(title="Healthcare Setup Wizard", version="1.0.0", lifespan=lifespan)

app.include_router(sessions_router, prefix="/api/v1", tags=["onboarding"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
