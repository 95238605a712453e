from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Mainnet mints
SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

LAMPORTS_PER_SOL = 1_000_000_000
USDC_DECIMALS = 6
SWAP_AMOUNT_LAMPORTS = 100_000  # 0.0001 SOL

# Balance headroom for the detailed check
TOKEN_ACCOUNT_RENT_LAMPORTS = 2_039_280
TX_FEE_BUFFER_LAMPORTS = 500_000

DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS = 1_000
DEFAULT_MAX_PRIORITY_FEE_MICRO_LAMPORTS = 50_000

REQUIRED_SWAP_ENV = ("PRIVATE_KEY", "FEE_RECIPIENT", "FEE_BASIS_POINTS")

PriorityFeeMode = Literal["auto", "fixed", "dynamic", "helius"]


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), extra="ignore")

    # Wallet / platform fee
    private_key: str | None = None  # base58, 64-byte secret key
    fee_recipient: str | None = None
    fee_basis_points: int | None = None

    # Solana
    rpc_endpoint: str = "https://api.mainnet-beta.solana.com"
    helius_rpc_endpoint: str | None = None

    # Jupiter
    jupiter_quote_url: str = "https://quote-api.jup.ag/v6/quote"
    jupiter_swap_url: str = "https://quote-api.jup.ag/v6/swap"
    slippage_bps: int = 50  # 0.5%
    http_timeout_sec: float = 10.0
    http_retries: int = 3

    # Priority fees (micro-lamports per compute unit)
    priority_fee_mode: PriorityFeeMode = "auto"
    fixed_priority_fee_micro_lamports: int = DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
    dynamic_priority_fee_multiplier: float = 1.2
    max_priority_fee_micro_lamports: int = DEFAULT_MAX_PRIORITY_FEE_MICRO_LAMPORTS

    # HTTP server
    port: int = 3001

    # Logging
    log_level: str = "INFO"

    # --- Validators to coerce empty strings in optional envs to None ---
    @field_validator(
        "private_key", "fee_recipient", "fee_basis_points", "helius_rpc_endpoint", mode="before"
    )
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    @field_validator("rpc_endpoint", mode="before")
    @classmethod
    def _default_rpc(cls, v):
        # RPC_ENDPOINT= in a generated .env means "use the public endpoint"
        if v in (None, ""):
            return "https://api.mainnet-beta.solana.com"
        return v

    @field_validator("priority_fee_mode", mode="before")
    @classmethod
    def _lower_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or "auto"
        return v

    @field_validator("fee_basis_points")
    @classmethod
    def _fee_bps_range(cls, v):
        if v is not None and not 0 <= v <= 10_000:
            raise ValueError("Fee basis points must be between 0 and 10000")
        return v

    def missing_swap_env(self) -> list[str]:
        values = {
            "PRIVATE_KEY": self.private_key,
            "FEE_RECIPIENT": self.fee_recipient,
            "FEE_BASIS_POINTS": self.fee_basis_points,
        }
        return [name for name in REQUIRED_SWAP_ENV if values[name] in (None, "")]

    def require_swap_credentials(self) -> None:
        missing = self.missing_swap_env()
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")


@dataclass(frozen=True)
class SwapOptions:
    use_shared_accounts: bool = False
    only_direct_routes: bool = True
    include_detailed_balance: bool = False
    include_platform_fee: bool = True
    simulate: bool = True

    @classmethod
    def preset(cls, name: str) -> SwapOptions:
        name = name.lower()
        if name == "detailed":
            return cls(include_detailed_balance=True, only_direct_routes=True)
        if name == "shared":
            return cls(use_shared_accounts=True, only_direct_routes=False)
        if name == "minimal":
            return cls()
        raise ValueError(f"Unknown swap preset: {name}")
