"""Infrastructure layer — resilience patterns for outbound calls.

Modules:
    retry       Exponential backoff retry decorator for async calls.
"""
