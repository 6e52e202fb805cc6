"""Room directory and lobby rules."""
