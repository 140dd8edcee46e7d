"""Workflow orchestration and the HTTP server."""
