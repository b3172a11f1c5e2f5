"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from market import Marketplace


def get_marketplace(request: Request) -> Marketplace:
    """Return the marketplace wired into the running application."""
    market = getattr(request.app.state, 'market', None)
    if market is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Marketplace not initialized"
        )
    return market


__all__ = ['get_marketplace']
