"""ASGI entrypoint for the circle backend."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from circle.api import auth, connections, feed, invites, ops, posts
from circle.api.errors import install_error_handlers
from circle.api.middleware_request_id import RequestIdMiddleware
from circle.infra import postgres
from circle.infra.scheduler import MaintenanceScheduler
from circle.maintenance.jobs import register_jobs
from circle.obs import init as obs_init
from circle.settings import settings

API_PREFIX = "/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	scheduler: MaintenanceScheduler | None = None
	if settings.maintenance_jobs_enabled:
		scheduler = MaintenanceScheduler()
		register_jobs(scheduler)
		scheduler.start()
		app.state.maintenance_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		await postgres.close_pool()


app = FastAPI(title="Circle API", lifespan=lifespan)
install_error_handlers(app)

app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.allowed_origins(),
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)
# Outermost, so the id is on request.state before observability runs.
app.add_middleware(RequestIdMiddleware)

app.include_router(auth.router, prefix=API_PREFIX, tags=["identity"])
app.include_router(connections.router, prefix=API_PREFIX, tags=["connections"])
app.include_router(invites.router, prefix=API_PREFIX, tags=["invites"])
app.include_router(feed.router, prefix=API_PREFIX, tags=["feed"])
app.include_router(posts.router, prefix=API_PREFIX, tags=["posts"])
app.include_router(ops.router, prefix=API_PREFIX)
