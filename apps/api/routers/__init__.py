"""Routers package."""

from . import (
    health,
    auth,
    thumbnails,
    generations,
    billing,
    admin,
)
