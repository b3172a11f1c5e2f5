"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, status, Depends, Security
from pydantic import BaseModel

from auth import (
    AuthManager, get_auth_manager, get_current_user, AuthError,
    ChallengeExpiredError, ChallengeUsedError, InvalidSignatureError
)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class ChallengeRequest(BaseModel):
    """Request model for creating a challenge."""
    address: str

class ChallengeResponse(BaseModel):
    """Response model for challenge creation."""
    challenge_id: str
    message: str
    expires_at: str

class VerifyRequest(BaseModel):
    """Request model for verifying a challenge."""
    challenge_id: str
    address: str
    signature: str

class LoginResponse(BaseModel):
    """Response model for login."""
    token: str
    expires_at: str

@router.post("/challenge", response_model=ChallengeResponse)
async def create_challenge(
    request: ChallengeRequest,
    manager: AuthManager = Depends(get_auth_manager)
):
    """Create a new authentication challenge."""
    try:
        return await manager.create_challenge(request.address)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/login", response_model=LoginResponse)
async def login(
    request: VerifyRequest,
    manager: AuthManager = Depends(get_auth_manager)
):
    """Verify a challenge signature and create session."""
    try:
        return await manager.verify_challenge(
            request.challenge_id,
            request.address,
            request.signature
        )
    except ChallengeExpiredError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Challenge has expired"
        )
    except ChallengeUsedError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Challenge has already been used"
        )
    except InvalidSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/logout")
async def logout(
    address: str = Security(get_current_user),
    manager: AuthManager = Depends(get_auth_manager)
):
    """Log out the current account by revoking its session."""
    await manager.logout(address)
    return {"success": True}

@router.get("/verify")
async def verify_token(address: str = Security(get_current_user)):
    """Verify the current session token."""
    return {
        "valid": True,
        "address": address
    }

# Export the router
__all__ = ['router']
