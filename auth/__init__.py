"""Authentication module using signed challenges and RPC verification.

This module provides:
1. Challenge creation and verification through the registry node's message signing
2. Single active session per account
3. Dependency for resolving the calling account on protected routes
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Protocol
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

from rpc import RPCError

# Configure logging
logger = logging.getLogger(__name__)

# Constants
CHALLENGE_EXPIRY_MINUTES = 5
SESSION_EXPIRY_DAYS = 30
JWT_ALGORITHM = "HS256"

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class ChallengeExpiredError(AuthError):
    """Raised when a challenge has expired."""
    pass

class ChallengeUsedError(AuthError):
    """Raised when a challenge has already been used."""
    pass

class InvalidSignatureError(AuthError):
    """Raised when message signature verification fails."""
    pass

class SessionExpiredError(AuthError):
    """Raised when a session has expired."""
    pass

class MessageVerifier(Protocol):
    """Anything able to check a signed message, e.g. ``rpc.RegistryRPC``."""

    def verify_message(self, address: str, signature: str, message: str) -> bool:
        ...

class AuthManager:
    """Manages authentication challenges and sessions in memory."""

    def __init__(
        self,
        verifier: MessageVerifier,
        secret: Optional[str] = None,
        session_expiry_days: int = SESSION_EXPIRY_DAYS
    ):
        """Initialize auth manager.

        Args:
            verifier: Signature verifier backed by the registry node
            secret: JWT signing secret. A random one is generated when empty,
                    which invalidates tokens on restart.
            session_expiry_days: Lifetime of issued tokens
        """
        self.verifier = verifier
        self.secret = secret or secrets.token_urlsafe(32)
        self.session_expiry_days = session_expiry_days
        self._challenges: Dict[str, Dict[str, Any]] = {}
        # Active token per account
        self._sessions: Dict[str, str] = {}

    def _prune_challenges(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [cid for cid, c in self._challenges.items() if c['expires_at'] < now]
        for cid in expired:
            del self._challenges[cid]

    async def create_challenge(self, address: str) -> Dict[str, Any]:
        """Create a new authentication challenge.

        Args:
            address: The account to authenticate

        Returns:
            Dict containing:
                - challenge_id: UUID of challenge
                - message: Message to sign
                - expires_at: Challenge expiration timestamp
        """
        if not address:
            raise AuthError("Address is required")

        self._prune_challenges()

        challenge_id = str(uuid.uuid4())
        message = f"Sign this message to authenticate: {secrets.token_hex(16)}"
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=CHALLENGE_EXPIRY_MINUTES)

        self._challenges[challenge_id] = {
            'address': address,
            'message': message,
            'expires_at': expires_at,
            'used': False
        }

        return {
            'challenge_id': challenge_id,
            'message': message,
            'expires_at': expires_at.isoformat()
        }

    async def verify_challenge(
        self,
        challenge_id: str,
        address: str,
        signature: str
    ) -> Dict[str, Any]:
        """Verify a challenge signature and create session.

        Args:
            challenge_id: UUID of the challenge
            address: The account that signed
            signature: The signature to verify

        Returns:
            Dict containing:
                - token: Session token for future requests
                - expires_at: Session expiration timestamp

        Raises:
            ChallengeExpiredError: If challenge has expired
            ChallengeUsedError: If challenge was already used
            InvalidSignatureError: If signature verification fails
        """
        challenge = self._challenges.get(challenge_id)
        if not challenge or challenge['address'] != address:
            raise AuthError("Challenge not found")

        if challenge['expires_at'] < datetime.now(timezone.utc):
            raise ChallengeExpiredError("Challenge has expired")

        if challenge['used']:
            raise ChallengeUsedError("Challenge has already been used")

        try:
            valid = self.verifier.verify_message(address, signature, challenge['message'])
        except RPCError as e:
            raise InvalidSignatureError(f"RPC error: {str(e)}")
        if not valid:
            raise InvalidSignatureError("Invalid signature")

        challenge['used'] = True

        expires_at = datetime.now(timezone.utc) + timedelta(days=self.session_expiry_days)
        token = jwt.encode(
            {
                'sub': address,
                'exp': int(expires_at.timestamp()),
                'jti': secrets.token_hex(8)
            },
            self.secret,
            algorithm=JWT_ALGORITHM
        )

        # Replaces any existing session for this account
        self._sessions[address] = token
        logger.info(f"Session created for {address}")

        return {
            'token': token,
            'expires_at': expires_at.isoformat()
        }

    async def verify_session(self, token: str) -> str:
        """Verify a session token.

        Args:
            token: The session token to verify

        Returns:
            The authenticated account

        Raises:
            SessionExpiredError: If session has expired
            AuthError: For other verification errors
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except ExpiredSignatureError:
            raise SessionExpiredError("Session has expired")
        except JWTError as e:
            raise AuthError(f"Invalid token: {str(e)}")

        address = payload.get('sub')
        if not address or self._sessions.get(address) != token:
            raise AuthError("Session not found or revoked")
        return address

    async def logout(self, address: str) -> None:
        """Log out by revoking the active session.

        Args:
            address: Account to log out
        """
        self._sessions.pop(address, None)

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=True,  # Reject automatically if token is missing
    description="JWT Bearer token required"
)

def get_auth_manager(request: Request) -> AuthManager:
    """FastAPI dependency returning the application's auth manager."""
    return request.app.state.auth

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    manager: AuthManager = Depends(get_auth_manager)
) -> str:
    """FastAPI dependency for getting the authenticated account.

    Args:
        credentials: Bearer token credentials
        manager: The auth manager

    Returns:
        The authenticated account

    Raises:
        HTTPException: If authentication fails
    """
    try:
        return await manager.verify_session(credentials.credentials)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired"
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

# Export public interface
__all__ = [
    'AuthManager',
    'MessageVerifier',
    'get_auth_manager',
    'get_current_user',
    'AuthError',
    'ChallengeExpiredError',
    'ChallengeUsedError',
    'InvalidSignatureError',
    'SessionExpiredError'
]
