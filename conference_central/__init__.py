"""
Conference Central backend.

This package provides a FastAPI application over a keyed record store, a
shared string cache and a deferred task queue, each with an in-memory
implementation for tests/dev and a production implementation.
"""
