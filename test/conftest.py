"""Shared fixtures: two fake chains with a bridge and a data union between them."""

import pytest
from eth_account import Account

from dataunion_relayer.bridge import BridgeRelay
from dataunion_relayer.data_union import DataUnion

from fakes import FakeChain, FakeForeignAmb, FakeHomeAmb, FakeMainnetDataUnion, FakeSidechainDataUnion

HOME_AMB_ADDRESS = "0x" + "a1" * 20
FOREIGN_AMB_ADDRESS = "0x" + "b2" * 20
MAINNET_DU_ADDRESS = "0x" + "c3" * 20
SIDECHAIN_DU_ADDRESS = "0x" + "d4" * 20
RECIPIENT = "0x" + "e5" * 20


@pytest.fixture
def mainnet():
    return FakeChain("mainnet")


@pytest.fixture
def sidechain():
    return FakeChain("sidechain")


@pytest.fixture
def admin():
    return Account.from_key("0x" + "11" * 32)


@pytest.fixture
def member():
    return Account.from_key("0x" + "22" * 32)


@pytest.fixture
def relayer():
    return Account.from_key("0x" + "33" * 32)


@pytest.fixture
def validators():
    return [Account.from_key("0x" + f"{i:02x}" * 32) for i in range(0x41, 0x44)]


@pytest.fixture
def home_amb(sidechain, validators):
    return sidechain.deploy(HOME_AMB_ADDRESS, FakeHomeAmb(HOME_AMB_ADDRESS, validators, required=2))


@pytest.fixture
def foreign_amb(mainnet, validators):
    return mainnet.deploy(FOREIGN_AMB_ADDRESS, FakeForeignAmb(FOREIGN_AMB_ADDRESS, validators, required=2))


@pytest.fixture
def sidechain_du(sidechain, home_amb):
    return sidechain.deploy(SIDECHAIN_DU_ADDRESS, FakeSidechainDataUnion(SIDECHAIN_DU_ADDRESS, home_amb))


@pytest.fixture
def mainnet_du(mainnet):
    return mainnet.deploy(MAINNET_DU_ADDRESS, FakeMainnetDataUnion())


@pytest.fixture
def data_union(mainnet, sidechain, admin, mainnet_du, sidechain_du):
    return DataUnion(
        mainnet_address=MAINNET_DU_ADDRESS,
        mainnet=mainnet,
        mainnet_account=admin,
        sidechain_address=SIDECHAIN_DU_ADDRESS,
        sidechain=sidechain,
        sidechain_account=admin,
    )


@pytest.fixture
def relay(mainnet, sidechain, home_amb, foreign_amb):
    return BridgeRelay(
        mainnet=mainnet,
        sidechain=sidechain,
        mainnet_amb_address=FOREIGN_AMB_ADDRESS,
        sidechain_amb_address=HOME_AMB_ADDRESS,
        poll_interval=0.01,
        poll_timeout=0.05,
    )
