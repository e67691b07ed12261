"""Core application wiring: lifespan, middleware, error tracking."""
