"""Client-facing transports for cursor-acp."""
