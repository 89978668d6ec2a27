"""
Test Suite

Structure:
- tests/unit/: Tests for the feed client, transports, presets and display service

The socket is replaced by the fake transport in tests/unit/conftest.py.
Uses pytest with pytest-asyncio for testing async functionality.
"""
