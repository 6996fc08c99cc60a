"""
FastAPI dependencies for the pipeline objects the app owns.

The recognition engine and lifecycle manager are built in the app lifespan
and stored on ``app.state``; routes reach them through these functions so
tests can swap them with ``app.dependency_overrides``.
"""
from fastapi import Request

from upi_verify.services.payment_lifecycle import PaymentLifecycleManager


def get_lifecycle_manager(request: Request) -> PaymentLifecycleManager:
    return request.app.state.lifecycle_manager
