"""Command line interface for testing configuration loading"""
import sys
from pathlib import Path

from . import get_settings, SettingsError

EXAMPLE = """[DEFAULT]
# Operator account receiving marketplace fees
fee_address = 0xFeeAddress
# Account holding escrowed assets and funds
marketplace_address = 0xMarketplaceAddress
# Operator fee in basis points (10000 = 100%)
default_fee = 1250
# JSON-RPC endpoints of the asset registry and fungible ledger nodes
registry_url = http://127.0.0.1:8545
ledger_url = http://127.0.0.1:8545
rpc_user =
rpc_password =
rpc_timeout = 10
# Leave empty to keep state in memory only
db_url = postgresql://root@localhost:26257/market?sslmode=disable
jwt_secret =
session_expiry_days = 30
api_host = 0.0.0.0
api_port = 8000
"""

def main():
    """Display loaded configuration or write an example file"""
    if '--example' in sys.argv:
        examples_dir = Path("examples")
        examples_dir.mkdir(exist_ok=True)
        with open(examples_dir / "settings.conf.example", "w") as f:
            f.write(EXAMPLE)
        print(f"Wrote {examples_dir / 'settings.conf.example'}")
        return
    
    try:
        settings = get_settings()
    except SettingsError as e:
        print(str(e))
        sys.exit(1)
    
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings.items():
        if key in ('rpc_password', 'jwt_secret') and value:
            value = '********'
        print(f"{key}: {value}")

if __name__ == "__main__":
    main()
