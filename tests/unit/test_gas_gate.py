"""Tests for the gas and balance gate."""

from decimal import Decimal

import pytest

from flash_arbitrage.exceptions import ErrorKind, InfrastructureError
from flash_arbitrage.gas_gate import GasBalanceGate

from conftest import FakeChain


@pytest.mark.asyncio
async def test_gas_below_ceiling_is_acceptable():
    gate = GasBalanceGate(FakeChain(gas_gwei=30.0))
    check = await gate.check_gas_acceptable(60)
    assert check.acceptable
    assert check.current_gwei == 30.0
    assert check.max_gwei == 60.0


@pytest.mark.asyncio
async def test_gas_above_ceiling_is_a_result_not_an_error():
    gate = GasBalanceGate(FakeChain(gas_gwei=80.0))
    check = await gate.check_gas_acceptable(60)
    assert not check.acceptable


@pytest.mark.asyncio
async def test_gas_at_ceiling_is_acceptable():
    gate = GasBalanceGate(FakeChain(gas_gwei=60.0))
    assert (await gate.check_gas_acceptable(60)).acceptable


@pytest.mark.asyncio
async def test_rpc_failure_is_infrastructure_error():
    chain = FakeChain()
    chain.gas_error = ConnectionError("connection refused")
    gate = GasBalanceGate(chain)

    with pytest.raises(InfrastructureError) as exc_info:
        await gate.check_gas_acceptable(60)

    assert exc_info.value.kind is ErrorKind.INFRASTRUCTURE
    assert exc_info.value.kind.retryable
    assert exc_info.value.endpoint == "eth_gasPrice"


@pytest.mark.asyncio
async def test_rpc_timeout_is_infrastructure_error():
    chain = FakeChain()
    chain.gas_delay = 1.0
    gate = GasBalanceGate(chain, timeout_seconds=0.01)

    with pytest.raises(InfrastructureError, match="timed out"):
        await gate.check_gas_acceptable(60)


@pytest.mark.asyncio
async def test_native_balance_check():
    gate = GasBalanceGate(FakeChain(balance=Decimal("0.05")))

    low = await gate.check_native_balance("0xabc", 0.1)
    assert not low.sufficient
    assert low.balance == Decimal("0.05")
    assert low.minimum == Decimal("0.1")

    ok = await gate.check_native_balance("0xabc", "0.01")
    assert ok.sufficient
