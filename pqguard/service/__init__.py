"""
pqguard HTTP service.

Run with any ASGI server, e.g.:

    uvicorn --factory pqguard.service:create_app
"""

from .auth import OperatorAuthenticator, operation_digest
from .deployment import Deployment, build_deployment, load_configured_deployment
from .main import create_app

__all__ = [
    "OperatorAuthenticator",
    "operation_digest",
    "Deployment",
    "build_deployment",
    "load_configured_deployment",
    "create_app",
]
