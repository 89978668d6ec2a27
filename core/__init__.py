"""
Core Package

Contains the reconnecting real-time feed client:
- RealtimeFeed: Connection state machine with reconnect and control envelopes
- Transports: aiohttp and websockets adapters behind one frame interface
- Reconnect policy and message decoding as plain functions
- Schemas: Pydantic models for configuration, snapshots and display views
"""
