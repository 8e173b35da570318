"""Integration tests running the client against the fake chat API.

Uses httpx ASGITransport over a FastAPI app; no network access.
"""
