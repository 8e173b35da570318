"""Test package for Compliance Chat.

Structure:
    - unit/: State machine, decoder, cache and config tests without I/O
    - integration/: Client and engine tests against the in-process fake API
    - fake_backend.py: FastAPI fake of the chat endpoints
"""
