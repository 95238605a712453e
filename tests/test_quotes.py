from __future__ import annotations

import pytest

from conftest import FakeResp


def _route(*labels):
    return {"routePlan": [{"swapInfo": {"label": l}} for l in labels]}


def test_route_info_direct_and_multi_hop():
    from sol_swap_engine.aggregators.quotes import route_info

    direct = route_info({})
    assert direct.exchanges == ["Direct"] and direct.hops == 1 and direct.complexity == "Simple"

    r = route_info(_route("Orca", "Raydium"))
    assert r.hops == 2 and r.complexity == "Moderate"
    assert r.route == "Orca → Raydium"

    r = route_info({"routePlan": [{"swapInfo": {"dexLabel": "Meteora"}}, {}, {"swapInfo": {}}]})
    assert r.exchanges == ["Meteora", "Unknown", "Unknown"]
    assert r.complexity == "Complex"


def test_adaptive_slippage_components():
    from sol_swap_engine.aggregators.quotes import RouteInfo, calculate_adaptive_slippage

    simple = RouteInfo(["Orca"], 1, "Simple", "Orca")
    assert calculate_adaptive_slippage(0.1, simple) == 100
    # 100 + floor(1.0 * 2 * 100)
    assert calculate_adaptive_slippage(1.0, simple) == 300
    three = RouteInfo(["Orca", "Lifinity", "Phoenix"], 3, "Complex", "")
    assert calculate_adaptive_slippage(0.0, three) == 150
    volatile = RouteInfo(["OpenBook"], 1, "Simple", "OpenBook")
    assert calculate_adaptive_slippage(0.0, volatile) == 150


@pytest.mark.parametrize("impact", [0.0, 0.3, 0.51, 2.0, 50.0, 1e6])
@pytest.mark.parametrize("hops", [1, 2, 5, 40])
def test_adaptive_slippage_is_clamped(impact, hops):
    from sol_swap_engine.aggregators.quotes import RouteInfo, SlippageConfig, calculate_adaptive_slippage

    cfg = SlippageConfig(base=10, min=50, max=500)
    route = RouteInfo(["Serum"] * hops, hops, "Complex", "")
    assert 50 <= calculate_adaptive_slippage(impact, route, cfg) <= 500


def test_fee_estimate():
    from sol_swap_engine.aggregators.quotes import estimate_fees

    fees = estimate_fees({"outAmount": "1000000", "platformFee": {"amount": "300"}})
    assert fees.platform_fee == 300
    assert fees.jupiter_fee == 100
    assert fees.total == 400


def test_output_monotonic():
    from sol_swap_engine.aggregators.quotes import is_output_monotonic

    assert is_output_monotonic([(10, 5), (1, 1), (100, 50)])
    assert is_output_monotonic([])
    assert not is_output_monotonic([(1, 10), (2, 9)])


def test_find_best_quote():
    from sol_swap_engine.aggregators.quotes import QuoteService, find_best_quote

    svc = QuoteService()
    a = svc.enhance({"outAmount": "100", "priceImpactPct": "0.2", **_route("A", "B")}, 1, 50)
    b = svc.enhance({"outAmount": "90", "priceImpactPct": "0.1", **_route("C")}, 1, 50)
    c = svc.enhance({"outAmount": "999", "priceImpactPct": "9"}, 1, 50)

    assert find_best_quote([a, b, c]) is a
    assert find_best_quote([a, b, c], prioritize_output=False) is b
    assert find_best_quote([a, b], prefer_direct_routes=True) is b
    with pytest.raises(ValueError, match="No valid quotes"):
        find_best_quote([c])


def test_quote_service_caches(monkeypatch, quote_json):
    from sol_swap_engine.aggregators.quotes import QuoteService

    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append(params)
        return FakeResp(quote_json)

    monkeypatch.setattr("requests.get", fake_get)
    svc = QuoteService(quote_url="http://jup/quote")
    q1 = svc.get_quote("A", "B", 100000, slippage_bps=50)
    q2 = svc.get_quote("A", "B", 100000, slippage_bps=50)
    assert q1 is q2
    assert len(calls) == 1
    assert q1.output_amount == 23456
    assert q1.route.exchanges == ["Whirlpool"]
    assert svc.is_quote_fresh(q1)

    svc.get_quote("A", "B", 100000, slippage_bps=50, use_cache=False)
    assert len(calls) == 2

    # expire everything
    svc.cache_ttl = -1
    assert svc.clear_expired_cache() == 1
    assert not svc.is_quote_fresh(q1)
