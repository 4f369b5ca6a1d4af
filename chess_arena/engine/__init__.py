"""Chess rules adapter."""
