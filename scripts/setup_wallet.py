from __future__ import annotations

import argparse
from pathlib import Path

from sol_swap_engine.execution.wallet import DEFAULT_FEE_BPS, generate_wallet, mask_secret, write_env_file

NEXT_STEPS = """
Setup complete. Next steps:

1. Fund the wallet: {address}
   Start with about 0.001 SOL.
2. Check connectivity:  python scripts/check_setup.py
3. Run a swap:          python scripts/swap.py

This is mainnet. Keep the private key secret and use small amounts only.
Solscan: https://solscan.io/account/{address}
"""


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a test wallet and write a .env file")
    p.add_argument("--env-file", default=".env", help="Where to write the env file (default: .env)")
    p.add_argument("--fee-bps", type=int, default=DEFAULT_FEE_BPS)
    p.add_argument("--force", action="store_true", help="Overwrite an existing env file")
    p.add_argument("--show-secret", action="store_true", help="Print the full private key")
    args = p.parse_args()

    path = Path(args.env_file)
    if path.exists() and not args.force:
        print(f"{path} already exists; pass --force to overwrite")
        return 1

    wallet = generate_wallet()
    print("Test wallet generated:")
    print(f"   Public Key: {wallet.public_key}")
    print(f"   Private Key: {wallet.private_key if args.show_secret else mask_secret(wallet.private_key)}")

    write_env_file(path, wallet, fee_bps=args.fee_bps)
    print(f"Wrote {path} (fee recipient: same wallet, {args.fee_bps} bps)")
    print(NEXT_STEPS.format(address=wallet.public_key))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
