"""
App assembly entry point.

Re-exports the FastAPI `app` from `taskbill.api.main` so servers can run
`uvicorn app:app` from the service directory.
"""

from taskbill.api.main import app  # noqa: F401
