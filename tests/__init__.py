"""Test package for ragchat.

Unit tests cover isolated logic; integration tests drive the FastAPI app
end to end.

Structure:
    - unit/: Individual function and class tests
    - integration/: HTTP-level tests of the chat endpoint

Hosted services are replaced by the in-memory fakes in conftest.py.
Leverages pytest with pytest-check for soft assertions.
"""
