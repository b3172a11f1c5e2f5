"""RPC module for the asset registry and fungible ledger nodes.

Both collaborators speak JSON-RPC 2.0 over HTTP. ``RegistryRPC`` and
``LedgerRPC`` implement the ``AssetRegistry`` and ``FungibleLedger``
contracts the marketplace core depends on, translating node error codes into
the marketplace error taxonomy.
"""
import requests
from typing import Any, Optional, Tuple

from market.errors import (
    InsufficientFundsError,
    NotApprovedError,
    NotFoundError,
    UnauthorizedError,
)

class RPCError(Exception):
    """Base exception for RPC errors"""
    def __init__(self, message: str, code: Optional[int] = None, method: Optional[str] = None):
        self.code = code
        self.method = method
        super().__init__(f"RPC Error [{code}] in {method}: {message}" if code else message)

class NodeConnectionError(RPCError):
    """Raised when connection to node fails"""
    pass

class NodeAuthError(RPCError):
    """Raised when authentication failed"""
    pass

class NodeError(RPCError):
    """Node-specific error codes and messages
    
    Common error codes:
    -32601 - Method not found
    -32602 - Invalid params
    -32000 - General error during processing
    -32001 - Asset not found
    -32002 - Caller is not owner nor approved
    -32003 - Insufficient balance
    -32004 - Insufficient allowance
    """
    # Map of known node error codes to human-readable messages
    ERROR_MESSAGES = {
        -32601: "Method not found",
        -32602: "Invalid params",
        -32000: "General error during processing",
        -32001: "Asset not found",
        -32002: "Caller is not owner nor approved",
        -32003: "Insufficient balance",
        -32004: "Insufficient allowance",
    }
    
    def __init__(self, message: str, code: int, method: str):
        self.code = code
        self.method = method
        # Get standard message for known error codes
        standard_msg = self.ERROR_MESSAGES.get(code, "Unknown error")
        # Combine standard message with specific message if different
        full_msg = f"{standard_msg} - {message}" if message != standard_msg else message
        super().__init__(full_msg, code, method)

ASSET_NOT_FOUND = -32001
NOT_OWNER_NOR_APPROVED = -32002
INSUFFICIENT_BALANCE = -32003
INSUFFICIENT_ALLOWANCE = -32004

class RPCMethod:
    """Descriptor class for RPC methods"""
    def __init__(self, method_name: str):
        self.method_name = method_name
    
    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        
        def caller(*args, **kwargs) -> Any:
            return obj._call_method(self.method_name, *args, **kwargs)
        
        return caller

class JSONRPCClient:
    """Minimal JSON-RPC 2.0 client over a persistent HTTP session"""
    
    def __init__(
        self,
        url: str,
        auth: Optional[Tuple[str, str]] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """Initialize RPC client
        
        Args:
            url: Node endpoint
            auth: Optional (user, password) for basic auth
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.url = url
        self.timeout = timeout
        
        # Initialize session with auth
        self.session = session or requests.Session()
        if auth and auth[0]:
            self.session.auth = auth
        self.session.headers['content-type'] = 'application/json'
        
        # Request ID counter
        self._request_id = 0
    
    def _get_request_id(self) -> int:
        """Get unique request ID"""
        self._request_id += 1
        return self._request_id
    
    def _call_method(self, method: str, *args) -> Any:
        """Make RPC call to the node
        
        Args:
            method: RPC method name
            *args: Method arguments
            
        Returns:
            Response from node
            
        Raises:
            NodeConnectionError: Connection to node failed
            NodeAuthError: Authentication failed
            NodeError: Node returned an error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(args),
            "id": self._get_request_id()
        }
        
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            
            # Check for auth error
            if response.status_code == 401:
                raise NodeAuthError("Authentication failed - check rpc_user/rpc_password")
            
            # Try to parse response even if status code is error
            result = response.json()
            
            # Check for RPC error
            if 'error' in result and result['error'] is not None:
                error = result['error']
                raise NodeError(
                    error.get('message', 'Unknown error'),
                    error.get('code', -32000),
                    method
                )
            
            # Now check for HTTP errors after we've tried to parse potential error response
            response.raise_for_status()
                
            return result['result']
            
        except requests.exceptions.Timeout as e:
            raise NodeConnectionError(
                f"Request timed out after {self.timeout} seconds"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NodeConnectionError(
                f"Failed to connect to node at {self.url}"
            ) from e
        except requests.exceptions.HTTPError as e:
            raise NodeConnectionError(
                f"HTTP error occurred: {str(e)}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise NodeConnectionError(
                f"Request failed: {str(e)}"
            ) from e
        except (KeyError, ValueError) as e:
            raise NodeConnectionError(
                f"Invalid response format: {str(e)}"
            ) from e

class RegistryRPC(JSONRPCClient):
    """Asset registry client implementing the ``AssetRegistry`` contract"""
    
    ownerOf = RPCMethod('ownerOf')
    transferCustody = RPCMethod('transferCustody')
    isApprovedForAll = RPCMethod('isApprovedForAll')
    verifymessage = RPCMethod('verifymessage')
    
    def owner_of(self, collection: str, asset_id: int) -> str:
        try:
            return self.ownerOf(collection, str(asset_id))
        except NodeError as e:
            if e.code == ASSET_NOT_FOUND:
                raise NotFoundError(f"asset {asset_id} does not exist in {collection}") from e
            raise
    
    def transfer_custody(self, collection: str, asset_id: int, from_account: str, to_account: str) -> None:
        try:
            self.transferCustody(collection, str(asset_id), from_account, to_account)
        except NodeError as e:
            if e.code == NOT_OWNER_NOR_APPROVED:
                raise UnauthorizedError(
                    f"transfer of asset {asset_id} from {from_account} not authorized"
                ) from e
            if e.code == ASSET_NOT_FOUND:
                raise NotFoundError(f"asset {asset_id} does not exist in {collection}") from e
            raise
    
    def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        return bool(self.isApprovedForAll(collection, owner, operator))
    
    def verify_message(self, address: str, signature: str, message: str) -> bool:
        return bool(self.verifymessage(address, signature, message))

class LedgerRPC(JSONRPCClient):
    """Fungible ledger client implementing the ``FungibleLedger`` contract
    
    Amounts travel as decimal strings so values above 2**53 survive JSON.
    """
    
    balanceOf = RPCMethod('balanceOf')
    allowance_of = RPCMethod('allowance')
    transferFrom = RPCMethod('transferFrom')
    transfer = RPCMethod('transfer')
    
    def __init__(self, url: str, marketplace_address: str, **kwargs):
        super().__init__(url, **kwargs)
        self.marketplace_address = marketplace_address
    
    def _map_error(self, e: NodeError, account: str, amount: int, currency: str) -> Exception:
        if e.code == INSUFFICIENT_BALANCE:
            return InsufficientFundsError(account, amount, currency=currency)
        if e.code == INSUFFICIENT_ALLOWANCE:
            return NotApprovedError(f"{account} has not approved {amount} {currency} for the marketplace")
        return e
    
    def balance_of(self, account: str, currency: str) -> int:
        return int(self.balanceOf(currency, account))
    
    def allowance(self, owner: str, spender: str, currency: str) -> int:
        return int(self.allowance_of(currency, owner, spender))
    
    def pull(self, from_account: str, to_account: str, amount: int, currency: str) -> None:
        try:
            self.transferFrom(currency, from_account, to_account, str(amount))
        except NodeError as e:
            raise self._map_error(e, from_account, amount, currency) from e
    
    def push(self, to_account: str, amount: int, currency: str) -> None:
        try:
            self.transfer(currency, self.marketplace_address, to_account, str(amount))
        except NodeError as e:
            raise self._map_error(e, self.marketplace_address, amount, currency) from e

# Export public interface
__all__ = [
    'RPCError',
    'NodeConnectionError',
    'NodeAuthError',
    'NodeError',
    'RPCMethod',
    'JSONRPCClient',
    'RegistryRPC',
    'LedgerRPC',
]
