from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import base58
from loguru import logger
from solders.keypair import Keypair

DEFAULT_FEE_BPS = 30


@dataclass(frozen=True)
class Wallet:
    private_key: str  # base58, 64 bytes
    public_key: str

    @classmethod
    def from_keypair(cls, kp: Keypair) -> Wallet:
        return cls(private_key=base58.b58encode(bytes(kp)).decode(), public_key=str(kp.pubkey()))


def generate_wallet() -> Wallet:
    return Wallet.from_keypair(Keypair())


def mask_secret(secret: str) -> str:
    if len(secret) <= 30:
        return secret[:4] + "..."
    return f"{secret[:20]}...{secret[-10:]}"


def render_env_file(wallet: Wallet, fee_bps: int = DEFAULT_FEE_BPS, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (
        "# Solana wallet private key (Base58 encoded)\n"
        f"PRIVATE_KEY={wallet.private_key}\n"
        "\n"
        "# Fee recipient wallet address (using same wallet for demo)\n"
        f"FEE_RECIPIENT={wallet.public_key}\n"
        "\n"
        f"# Fee in basis points (e.g., 30 = 0.3%)\n"
        f"FEE_BASIS_POINTS={fee_bps}\n"
        "\n"
        "# Optional: RPC endpoint (defaults to public endpoint)\n"
        "# RPC_ENDPOINT=https://api.mainnet-beta.solana.com\n"
        "\n"
        f"# Generated on: {now.isoformat()}\n"
        f"# Wallet Address: {wallet.public_key}\n"
        "# WARNING: This is for testing only! Fund with small amounts only!\n"
    )


def write_env_file(path: str | Path, wallet: Wallet, fee_bps: int = DEFAULT_FEE_BPS) -> Path:
    p = Path(path)
    p.write_text(render_env_file(wallet, fee_bps=fee_bps))
    logger.info(".env file created at {}", p)
    return p
