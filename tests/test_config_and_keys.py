from __future__ import annotations

import base58
import pytest
from solders.keypair import Keypair


def test_empty_env_coercion(monkeypatch):
    from sol_swap_engine.config import AppSettings

    monkeypatch.setenv("FEE_BASIS_POINTS", "")
    monkeypatch.setenv("HELIUS_RPC_ENDPOINT", "")
    monkeypatch.setenv("RPC_ENDPOINT", "")
    s = AppSettings()
    assert s.fee_basis_points is None
    assert s.helius_rpc_endpoint is None
    assert s.rpc_endpoint == "https://api.mainnet-beta.solana.com"


def test_missing_swap_env_lists_all(monkeypatch):
    from sol_swap_engine.config import AppSettings

    for name in ("PRIVATE_KEY", "FEE_RECIPIENT", "FEE_BASIS_POINTS"):
        monkeypatch.delenv(name, raising=False)
    s = AppSettings(_env_file=None)
    assert s.missing_swap_env() == ["PRIVATE_KEY", "FEE_RECIPIENT", "FEE_BASIS_POINTS"]
    with pytest.raises(ValueError, match="Missing environment variables: PRIVATE_KEY, FEE_RECIPIENT"):
        s.require_swap_credentials()


def test_priority_mode_is_lowercased():
    from sol_swap_engine.config import AppSettings

    assert AppSettings(priority_fee_mode="DYNAMIC").priority_fee_mode == "dynamic"


def test_settings_reject_out_of_range_bps():
    from pydantic import ValidationError

    from sol_swap_engine.config import AppSettings

    with pytest.raises(ValidationError):
        AppSettings(fee_basis_points=10_001)


def test_swap_presets():
    from sol_swap_engine.config import SwapOptions

    assert SwapOptions.preset("detailed").include_detailed_balance is True
    assert SwapOptions.preset("shared").use_shared_accounts is True
    assert SwapOptions.preset("shared").only_direct_routes is False
    assert SwapOptions.preset("minimal") == SwapOptions()
    with pytest.raises(ValueError):
        SwapOptions.preset("turbo")


def test_load_keypair_roundtrip(keypair, secret_b58):
    from sol_swap_engine.keys import load_keypair

    assert load_keypair(secret_b58).pubkey() == keypair.pubkey()


@pytest.mark.parametrize("size", [32, 63, 65])
def test_load_keypair_rejects_wrong_length(size):
    from sol_swap_engine.keys import load_keypair

    bad = base58.b58encode(bytes(range(size))).decode()
    with pytest.raises(ValueError, match="Invalid private key: Private key must be 64 bytes"):
        load_keypair(bad)


def test_load_keypair_rejects_non_base58():
    from sol_swap_engine.keys import load_keypair

    with pytest.raises(ValueError, match="Invalid private key"):
        load_keypair("0OIl not base58")


def test_parse_pubkey():
    from sol_swap_engine.keys import parse_pubkey

    pk = Keypair().pubkey()
    assert parse_pubkey(str(pk)) == pk
    with pytest.raises(ValueError, match="Invalid fee recipient address"):
        parse_pubkey("nope")


@pytest.mark.parametrize("value,expected", [(0, 0), ("30", 30), (10_000, 10_000)])
def test_parse_fee_bps_accepts(value, expected):
    from sol_swap_engine.keys import parse_fee_bps

    assert parse_fee_bps(value) == expected


@pytest.mark.parametrize("value", [-1, 10_001, "abc", None, ""])
def test_parse_fee_bps_rejects(value):
    from sol_swap_engine.keys import parse_fee_bps

    with pytest.raises(ValueError, match="Fee basis points must be between 0 and 10000"):
        parse_fee_bps(value)


def test_validate_environment(secret_b58, keypair):
    from sol_swap_engine.config import AppSettings
    from sol_swap_engine.keys import validate_environment

    recipient = str(Keypair().pubkey())
    s = AppSettings(private_key=secret_b58, fee_recipient=recipient, fee_basis_points=30)
    kp, fee_pk, bps = validate_environment(s)
    assert kp.pubkey() == keypair.pubkey()
    assert str(fee_pk) == recipient
    assert bps == 30
