from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from foundry.api import activities, ops, sessions, stocktake, submissions, votes
from foundry.api.errors import install_error_handlers
from foundry.infra import postgres
from foundry.infra.migrations import apply_migrations
from foundry.infra.redis import redis_client
from foundry.obs import init as obs_init
from foundry.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	if not settings.uses_memory_store():
		pool = await postgres.init_pool()
		await apply_migrations(pool)
	try:
		yield
	finally:
		await postgres.close_pool()
		await redis_client.close()


app = FastAPI(title="SessionFoundry Workshop Core", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

app.include_router(activities.router)
app.include_router(submissions.router)
app.include_router(votes.router)
app.include_router(stocktake.router)
app.include_router(sessions.router)
app.include_router(ops.router)
