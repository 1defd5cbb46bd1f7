"""Command line interface for testing configuration loading"""
from . import settings_conf, network_conf
from pathlib import Path

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        print(f"{key}: {value}")

    print("\nNetworks:")
    print("-" * 50)
    for name, network in sorted(network_conf.items()):
        print(f"{name}:")
        print(f"  api_url: {network.api_url}")
        print(f"  explorer_url: {network.explorer_url}")
        print(f"  marketplace_id: {network.marketplace_id}")

    # Save example configuration file
    example = Path("settings.conf.example")
    if not example.exists():
        with open(example, "w") as f:
            f.write("""[DEFAULT]
# Network used when a request does not name one
default_network = mainnet
# Precision used for currencies missing from the token table
fallback_precision = 6
ipfs_gateway = cloudflare-ipfs.com

[network:testnet]
api_url = https://api.testnet.klever.org
explorer_url = https://testnet.kleverscan.org
""")

if __name__ == "__main__":
    main()
