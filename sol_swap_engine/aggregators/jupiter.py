from __future__ import annotations

from typing import Any, Iterable, Union

import requests

from sol_swap_engine.errors import JupiterError
from sol_swap_engine.retry import retry_call

HEADERS = {"Accept": "application/json", "User-Agent": "sol-swap-engine/1.0"}

ComputeUnitPrice = Union[int, str, None]  # "auto" | micro-lamports | None (omit)


def _flag(v: bool) -> str:
    return "true" if v else "false"


def _raise_for_api_error(r: requests.Response, prefix: str) -> None:
    if r.ok:
        return
    try:
        body = r.json() or {}
    except ValueError:
        body = {}
    if isinstance(body, dict) and body.get("error"):
        raise JupiterError(f"{prefix}: {body['error']}")
    r.raise_for_status()


def build_quote_params(
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    only_direct_routes: bool = False,
    platform_fee_bps: int | None = None,
    fee_account: str | None = None,
    exclude_dexes: Iterable[str] = (),
    max_accounts: int = 64,
    as_legacy_transaction: bool = False,
) -> dict[str, str]:
    params = {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "amount": str(amount),
        "slippageBps": str(slippage_bps),
        "onlyDirectRoutes": _flag(only_direct_routes),
        "asLegacyTransaction": _flag(as_legacy_transaction),
        "maxAccounts": str(max_accounts),
    }
    # Jupiter rejects a fee without an account to collect it
    if platform_fee_bps and fee_account:
        params["platformFeeBps"] = str(platform_fee_bps)
        params["feeAccount"] = fee_account
    dexes = [d for d in exclude_dexes if d]
    if dexes:
        params["excludeDexes"] = ",".join(dexes)
    return params


def get_quote(
    quote_url: str,
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    only_direct_routes: bool = False,
    platform_fee_bps: int | None = None,
    fee_account: str | None = None,
    exclude_dexes: Iterable[str] = (),
    max_accounts: int = 64,
    as_legacy_transaction: bool = False,
    timeout: float = 10.0,
    retries: int = 3,
) -> dict[str, Any]:
    params = build_quote_params(
        input_mint,
        output_mint,
        amount,
        slippage_bps,
        only_direct_routes=only_direct_routes,
        platform_fee_bps=platform_fee_bps,
        fee_account=fee_account,
        exclude_dexes=exclude_dexes,
        max_accounts=max_accounts,
        as_legacy_transaction=as_legacy_transaction,
    )

    def _fetch(attempt: int) -> dict[str, Any]:
        # Each retry gets a longer timeout
        r = requests.get(quote_url, params=params, headers=HEADERS, timeout=timeout * (attempt + 1))
        _raise_for_api_error(r, "Jupiter API error")
        return r.json()

    try:
        data = retry_call(_fetch, attempts=retries, label="Quote")
    except JupiterError:
        raise
    except (requests.RequestException, ValueError) as e:
        raise JupiterError(f"Quote request failed: {e}") from e

    if not isinstance(data, dict) or not data.get("outAmount"):
        raise JupiterError("Invalid quote response from Jupiter")
    return data


def compute_unit_price_param(priority_fee: ComputeUnitPrice) -> ComputeUnitPrice:
    """Map a priority fee setting onto the swap API's computeUnitPriceMicroLamports."""
    if priority_fee is None:
        return None
    if priority_fee == "auto":
        return "auto"
    fee = int(priority_fee)
    if fee < 0:
        raise ValueError("Priority fee must be non-negative")
    return fee


def build_swap_payload(
    quote: dict[str, Any],
    user_public_key: str,
    wrap_and_unwrap_sol: bool = True,
    use_shared_accounts: bool = False,
    fee_account: str | None = None,
    compute_unit_price_micro_lamports: ComputeUnitPrice = "auto",
    as_legacy_transaction: bool = False,
    use_token_ledger: bool = False,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "quoteResponse": quote,
        "userPublicKey": str(user_public_key),
        "wrapAndUnwrapSol": wrap_and_unwrap_sol,
        "useSharedAccounts": use_shared_accounts,
        "asLegacyTransaction": as_legacy_transaction,
        "useTokenLedger": use_token_ledger,
    }
    if fee_account:
        payload["feeAccount"] = fee_account
    price = compute_unit_price_param(compute_unit_price_micro_lamports)
    if price is not None:
        payload["computeUnitPriceMicroLamports"] = price
    return payload


def get_swap_transaction(
    swap_url: str,
    quote: dict[str, Any],
    user_public_key: str,
    wrap_and_unwrap_sol: bool = True,
    use_shared_accounts: bool = False,
    fee_account: str | None = None,
    compute_unit_price_micro_lamports: ComputeUnitPrice = "auto",
    as_legacy_transaction: bool = False,
    use_token_ledger: bool = False,
    timeout: float = 10.0,
    retries: int = 3,
) -> str:
    payload = build_swap_payload(
        quote,
        user_public_key,
        wrap_and_unwrap_sol=wrap_and_unwrap_sol,
        use_shared_accounts=use_shared_accounts,
        fee_account=fee_account,
        compute_unit_price_micro_lamports=compute_unit_price_micro_lamports,
        as_legacy_transaction=as_legacy_transaction,
        use_token_ledger=use_token_ledger,
    )

    def _post(attempt: int) -> str | None:
        r = requests.post(
            swap_url,
            json=payload,
            headers={**HEADERS, "Content-Type": "application/json"},
            timeout=timeout * 2,
        )
        _raise_for_api_error(r, "Jupiter swap API error")
        return (r.json() or {}).get("swapTransaction")

    try:
        swap_tx = retry_call(_post, attempts=retries, label="Swap creation")
    except JupiterError:
        raise
    except (requests.RequestException, ValueError) as e:
        raise JupiterError(f"Swap transaction creation failed: {e}") from e

    if not swap_tx:
        raise JupiterError("No swap transaction returned from Jupiter")
    return swap_tx
