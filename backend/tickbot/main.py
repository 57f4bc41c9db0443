from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tickbot.api.engine import get_engine_hub, router as engine_router
from tickbot.config import settings
from tickbot.services.engine_hub import EngineHub

engine_hub = EngineHub()


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await engine_hub.stop()


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(engine_router)
app.dependency_overrides[get_engine_hub] = lambda: engine_hub
