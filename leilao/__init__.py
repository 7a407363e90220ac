"""Distributed auction gateway with HTTP, TCP and UDP workers."""
