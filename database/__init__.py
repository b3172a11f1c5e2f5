"""Database module for persisting marketplace state to CockroachDB.

This module handles:
- Database connection pool initialization
- Schema management
- Connection lifecycle
"""

import logging
import ssl
from typing import Optional, Dict, Any
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs

from .exceptions import DatabaseError, DatabaseSchemaError, PersistenceError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

# sslmode values that require an encrypted connection
_SSL_MODES = ('require', 'verify-ca', 'verify-full')

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for CockroachDB Cloud connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.
    
    Args:
        db_url: Database connection URL
        
    Returns:
        Dict of connection parameters
    """
    params = parse_qs(urlparse(db_url).query)
    
    kwargs: Dict[str, Any] = {
        'server_settings': {
            'statement_timeout': '60000',  # 1 minute
        }
    }
    
    sslmode = params.get('sslmode', [''])[0]
    if sslmode in _SSL_MODES:
        kwargs['ssl'] = _get_ssl_context()
    elif sslmode == 'disable':
        kwargs['ssl'] = False
            
    return kwargs

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(db_url: Optional[str] = None) -> asyncpg.Pool:
    """Initialize the database connection pool and schema.
    
    Args:
        db_url: Optional database URL. If not provided, will use settings.
        
    Returns:
        The connection pool
        
    Raises:
        DatabaseError: If no database URL is configured
        DatabaseSchemaError: If the schema cannot be applied
    """
    global _pool, _schema_manager
    
    if _pool is not None:
        return _pool
    
    # Import here to avoid circular imports
    from config import get_settings
    
    url = db_url or get_settings().get('db_url')
    if not url:
        raise DatabaseError("Database URL not provided")
    
    try:
        pool = await asyncpg.create_pool(
            url,
            min_size=1,
            max_size=10,
            max_inactive_connection_lifetime=300.0,  # 5 minutes
            command_timeout=60.0,
            **_get_connection_kwargs(url)
        )
        
        schema_manager = SchemaManager(pool)
        await schema_manager.initialize()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise
    
    _pool, _schema_manager = pool, schema_manager
    logger.info(f"Database ready at schema version {schema_manager.current_version}")
    return _pool

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.
    
    Returns:
        The connection pool
        
    Raises:
        DatabaseError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise DatabaseError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager
    
    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None

# Export public interface
__all__ = [
    'init_db', 'get_pool', 'close',
    'DatabaseError', 'DatabaseSchemaError', 'PersistenceError'
]
