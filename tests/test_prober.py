"""Tests for the page existence prober."""

import httpx
import pytest
import respx

from variant_scanner.models import ProbeResult
from variant_scanner.prober import PageProber, RemoteUnavailableError

URL = "https://cards.example.com/Singles/Scarlet-Violet/pikachu-V1-SVI007"


@pytest.fixture
def make_prober(sleeper):
    probers = []

    def factory(**kwargs):
        kwargs.setdefault("sleep", sleeper)
        prober = PageProber(**kwargs)
        probers.append(prober)
        return prober

    return factory


@pytest.mark.asyncio
@respx.mock
async def test_probe_existing_page(respx_mock, make_prober):
    respx_mock.get(URL).mock(return_value=httpx.Response(200, text="<html>Pikachu</html>"))
    prober = make_prober()
    assert await prober.probe(URL) is ProbeResult.EXISTS
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_absorbs_rate_limiting(respx_mock, make_prober, sleeper):
    route = respx_mock.get(URL).mock(side_effect=[
        httpx.Response(429),
        httpx.Response(429),
        httpx.Response(200, text="ok"),
    ])
    prober = make_prober(rate_limit_cooldown=60.0, backoff_factor=1.0)
    assert await prober.probe(URL) is ProbeResult.EXISTS
    assert route.call_count == 3
    assert sleeper.calls == [60.0, 60.0]
    assert prober.stats.rate_limited == 2
    assert prober.stats.requests == 3
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_block_uses_longer_cooldown_with_backoff(respx_mock, make_prober, sleeper):
    respx_mock.get(URL).mock(side_effect=[
        httpx.Response(403),
        httpx.Response(403),
        httpx.Response(429),
        httpx.Response(404),
    ])
    prober = make_prober(
        rate_limit_cooldown=60.0, block_cooldown=300.0, backoff_factor=2.0, max_cooldown=1000.0
    )
    assert await prober.probe(URL) is ProbeResult.NOT_FOUND
    assert sleeper.calls == [300.0, 600.0, 240.0]
    assert prober.stats.blocked == 2
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_cooldown_is_capped(respx_mock, make_prober, sleeper):
    respx_mock.get(URL).mock(side_effect=[httpx.Response(403)] * 3 + [httpx.Response(200)])
    prober = make_prober(block_cooldown=300.0, backoff_factor=2.0, max_cooldown=500.0)
    assert await prober.probe(URL) is ProbeResult.EXISTS
    assert sleeper.calls == [300.0, 500.0, 500.0]
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_gives_up_after_max_attempts(respx_mock, make_prober, sleeper):
    route = respx_mock.get(URL).mock(return_value=httpx.Response(429))
    prober = make_prober(max_attempts=3, backoff_factor=1.0, rate_limit_cooldown=1.0)
    assert await prober.probe(URL) is ProbeResult.INCONCLUSIVE
    assert route.call_count == 3
    assert sleeper.calls == [1.0, 1.0]
    assert prober.stats.abandoned == 1
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_unbounded_retries(respx_mock, make_prober, sleeper):
    respx_mock.get(URL).mock(side_effect=[httpx.Response(429)] * 12 + [httpx.Response(200)])
    prober = make_prober(max_attempts=None, rate_limit_cooldown=1.0, backoff_factor=1.0)
    assert await prober.probe(URL) is ProbeResult.EXISTS
    assert len(sleeper.calls) == 12
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_redirect_is_not_found(respx_mock, make_prober):
    respx_mock.get(URL).mock(return_value=httpx.Response(
        301, headers={"Location": "https://cards.example.com/Singles/Scarlet-Violet"}
    ))
    prober = make_prober()
    assert await prober.probe(URL) is ProbeResult.NOT_FOUND
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_soft_404_marker(respx_mock, make_prober):
    respx_mock.get(URL).mock(return_value=httpx.Response(
        200, text="<html><div class='alert'>Invalid product!</div></html>"
    ))
    prober = make_prober()
    assert await prober.probe(URL) is ProbeResult.NOT_FOUND
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_custom_marker(respx_mock, make_prober):
    respx_mock.get(URL).mock(return_value=httpx.Response(200, text="No such card"))
    prober = make_prober(invalid_marker="No such card")
    assert await prober.probe(URL) is ProbeResult.NOT_FOUND
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_other_status_is_not_found(respx_mock, make_prober):
    respx_mock.get(URL).mock(return_value=httpx.Response(500, text="oops"))
    prober = make_prober()
    assert await prober.probe(URL) is ProbeResult.NOT_FOUND
    await prober.close()


@pytest.mark.asyncio
@respx.mock
async def test_probe_network_failure_raises(respx_mock, make_prober):
    respx_mock.get(URL).mock(side_effect=httpx.ConnectError)
    prober = make_prober()
    with pytest.raises(RemoteUnavailableError):
        await prober.probe(URL)
    await prober.close()
