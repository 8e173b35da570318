"""Unit tests for individual components in isolation.

Coverage:
    - streaming: NDJSON line reassembly and event parsing
    - conversation: pure state transitions
    - storage: local cache and recent-session history
    - client: configuration validation
"""
