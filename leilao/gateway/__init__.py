"""Gateway core: dispatching, heartbeat and forwarding."""
