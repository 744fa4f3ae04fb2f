"""
Fixtures used in the tests
"""
import pytest

from ordbuilder.primitives import FeeRate, use_network
from tests.utility import taproot_address


@pytest.fixture(autouse=True)
def testnet():
    use_network("testnet")
    yield
    use_network("testnet")


@pytest.fixture()
def recipient():
    return taproot_address(1)


@pytest.fixture()
def change():
    return [taproot_address(2), taproot_address(3)]


@pytest.fixture()
def fee_rate():
    return FeeRate.from_str("1")
