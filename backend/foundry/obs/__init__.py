"""Logging, metrics and probes for the workshop API."""

from __future__ import annotations

from fastapi import FastAPI

from foundry.obs import logging as obs_logging
from foundry.obs import middleware
from foundry.settings import settings


def init(app: FastAPI) -> None:
	"""Configure JSON logging and request instrumentation once per app."""
	if not settings.obs_enabled or getattr(app.state, "obs_installed", False):
		return
	obs_logging.configure_logging()
	middleware.install(app)
	app.state.obs_installed = True


__all__ = ["init"]
