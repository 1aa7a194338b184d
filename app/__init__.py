"""
FastAPI Application Package

This package contains the FastAPI application: REST endpoints for venue and
instrument discovery and order impact simulation, and a WebSocket endpoint that
pushes live order book updates.
"""
