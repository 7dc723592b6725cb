"""Core modules for the Finance Tracker client."""

from . import (
    aggregation,
    api,
    busy,
    config,
    context,
    errors,
    guard,
    notifications,
    preferences,
    session,
    storage,
    synth,
    utils,
    views,
    viz,
)

__all__ = [
	"aggregation",
	"api",
	"busy",
	"config",
	"context",
	"errors",
	"guard",
	"notifications",
	"preferences",
	"session",
	"storage",
	"synth",
	"utils",
	"views",
	"viz",
]
