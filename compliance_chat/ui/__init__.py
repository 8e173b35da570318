"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Chat message display with streaming updates and references
    - Recent session list with switch and delete
    - General chat and per-document chat pages

Contains no conversation logic. Renders ChatEngine state and forwards
user actions to it.
"""
