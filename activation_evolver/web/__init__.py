"""JSON HTTP API over a Simulation."""

from .app import create_app
