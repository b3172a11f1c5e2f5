"""Command line interface for testing RPC connectivity"""
import sys

from config import get_settings, SettingsError
from . import RegistryRPC, LedgerRPC, NodeConnectionError, NodeAuthError, NodeError

def test_rpc():
    """Query the configured registry and ledger nodes"""
    try:
        settings = get_settings()
    except SettingsError as e:
        print(str(e))
        sys.exit(1)
    
    auth = (settings['rpc_user'], settings['rpc_password'])
    registry = RegistryRPC(settings['registry_url'], auth=auth, timeout=settings['rpc_timeout'])
    ledger = LedgerRPC(
        settings['ledger_url'],
        settings['marketplace_address'],
        auth=auth,
        timeout=settings['rpc_timeout']
    )
    
    try:
        print("\nTesting registry node:")
        print("-" * 50)
        approved = registry.is_approved_for_all(
            sys.argv[1] if len(sys.argv) > 1 else '',
            settings['fee_address'],
            settings['marketplace_address']
        )
        print(f"  Success! isApprovedForAll answered {approved}")
        
        if len(sys.argv) > 2:
            print("\nTesting ledger node:")
            print("-" * 50)
            balance = ledger.balance_of(settings['marketplace_address'], sys.argv[2])
            print(f"  Success! Marketplace balance: {balance} {sys.argv[2]}")
    
    except NodeConnectionError as e:
        print("\nFailed to connect to node:")
        print(f"  {str(e)}")
        
    except NodeAuthError as e:
        print("\nAuthentication failed:")
        print(f"  {str(e)}")
    
    except NodeError as e:
        print("\nNode returned an error:")
        print(f"  {str(e)}")

if __name__ == "__main__":
    test_rpc()
