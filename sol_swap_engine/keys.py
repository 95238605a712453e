from __future__ import annotations

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from sol_swap_engine.config import AppSettings

SECRET_KEY_LENGTH = 64


def load_keypair(secret_b58: str) -> Keypair:
    """Decode a base58 secret key into a Keypair; exactly 64 bytes are accepted."""
    try:
        secret = base58.b58decode(secret_b58.strip())
        if len(secret) != SECRET_KEY_LENGTH:
            raise ValueError("Private key must be 64 bytes")
        return Keypair.from_bytes(secret)
    except Exception as e:
        raise ValueError(f"Invalid private key: {e}") from e


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address.strip())
    except Exception as e:
        raise ValueError("Invalid fee recipient address") from e


def parse_fee_bps(value: int | str | None) -> int:
    try:
        bps = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        bps = None
    if bps is None or not 0 <= bps <= 10_000:
        raise ValueError("Fee basis points must be between 0 and 10000")
    return bps


def validate_environment(settings: AppSettings) -> tuple[Keypair, Pubkey, int]:
    settings.require_swap_credentials()
    keypair = load_keypair(settings.private_key or "")
    fee_recipient = parse_pubkey(settings.fee_recipient or "")
    fee_bps = parse_fee_bps(settings.fee_basis_points)
    return keypair, fee_recipient, fee_bps
