"""Streaming protocol decoding.

Turns the streamed answer body into typed protocol events.

Responsibilities:
    - Line reassembly across arbitrary read boundaries
    - UTF-8 decoding that survives split multi-byte characters
    - Skipping blank, malformed and unknown lines without aborting the stream
    - Idle timeout on stalled streams
"""

from compliance_chat.streaming.ndjson import ByteStream, NDJSONDecoder, iter_events, parse_event

__all__ = ["ByteStream", "NDJSONDecoder", "iter_events", "parse_event"]
