"""
FastAPI Application Package

Serves the market data display over REST and WebSocket endpoints.
"""
