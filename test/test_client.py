"""Tests for DataUnionClient against the in-memory chains."""

import asyncio

import pytest

from dataunion_relayer.client import DataUnionClient, to_wei
from dataunion_relayer.config import BridgeConfig
from dataunion_relayer.errors import InvalidArgument, WaitTimeout
from dataunion_relayer.models import RelayStatus

from conftest import FOREIGN_AMB_ADDRESS, HOME_AMB_ADDRESS, RECIPIENT
from fakes import FakeMainnetFactory, FakeSidechainFactory, FakeToken

MAINNET_FACTORY_ADDRESS = "0x" + "f1" * 20
SIDECHAIN_FACTORY_ADDRESS = "0x" + "f2" * 20
MAINNET_TOKEN = "0x" + "7a" * 20
SIDECHAIN_TOKEN = "0x" + "7b" * 20


@pytest.fixture
def mainnet_factory(mainnet, sidechain):
    factory = FakeMainnetFactory(mainnet, sidechain, MAINNET_TOKEN, FOREIGN_AMB_ADDRESS)
    return mainnet.deploy(MAINNET_FACTORY_ADDRESS, factory)


@pytest.fixture
def sidechain_factory(sidechain):
    return sidechain.deploy(SIDECHAIN_FACTORY_ADDRESS, FakeSidechainFactory(SIDECHAIN_TOKEN, HOME_AMB_ADDRESS))


@pytest.fixture
def client(mainnet, sidechain, admin, mainnet_factory, sidechain_factory, home_amb, foreign_amb):
    return DataUnionClient(
        mainnet=mainnet,
        mainnet_account=admin,
        mainnet_factory=MAINNET_FACTORY_ADDRESS,
        sidechain=sidechain,
        sidechain_account=admin,
        sidechain_factory=SIDECHAIN_FACTORY_ADDRESS,
        bridge_config=BridgeConfig(poll_interval=0.01, poll_timeout=0.05),
    )


def test_to_wei():
    assert to_wei(0.1) == 10**17
    assert to_wei(1) == 10**18
    assert to_wei(0) == 0


class TestDeploy:

    def test_deploy_data_union(self, client, mainnet_factory, admin, member):
        du = client.deploy_data_union("test-du", admin.address, 0.1, [member.address])

        assert mainnet_factory.deploy_args == [(admin.address, 10**17, [member.address], "test-du")]
        assert du.mainnet_address == mainnet_factory.mainnetAddress(admin.address, "test-du")
        assert du.sidechain_address == mainnet_factory.sidechainAddress(du.mainnet_address)

    @pytest.mark.parametrize("fraction", [-0.1, 1.5])
    def test_fee_fraction_out_of_range(self, client, mainnet, admin, fraction):
        with pytest.raises(InvalidArgument):
            client.deploy_data_union("bad", admin.address, fraction, [])
        assert mainnet.sent == []

    @pytest.mark.asyncio
    async def test_wait_for_sidechain_deployment(self, client, mainnet_factory, admin):
        mainnet_factory.deploy_sidechain = False
        du = client.deploy_data_union("pending", admin.address, 0, [])
        assert await du.is_deployed() is False

        mainnet_factory.deploy_sidechain = True
        du = client.deploy_data_union("ready", admin.address, 0, [])
        assert await du.is_deployed() is True

    def test_load_by_name(self, client, admin):
        deployed = client.deploy_data_union("named", admin.address, 0, [])
        loaded = client.data_union_from_name("named")

        assert loaded.mainnet_address == deployed.mainnet_address
        assert loaded.sidechain_address == deployed.sidechain_address

    def test_load_by_mainnet_address(self, client, admin):
        deployed = client.deploy_data_union("by-address", admin.address, 0, [])
        loaded = client.data_union_from_mainnet_address(deployed.mainnet_address)
        assert loaded.sidechain_address == deployed.sidechain_address


class TestFactories:

    def test_addresses(self, client):
        assert client.mainnet_token_address() == MAINNET_TOKEN
        assert client.sidechain_token_address() == SIDECHAIN_TOKEN
        assert client.mainnet_amb_address() == FOREIGN_AMB_ADDRESS
        assert client.sidechain_amb_address() == HOME_AMB_ADDRESS

    def test_initial_eth_settings(self, client, sidechain_factory):
        client.set_new_du_initial_eth(1)
        client.set_new_du_owner_initial_eth(2)
        client.set_new_member_initial_eth(3)

        assert sidechain_factory.settings == {"du": 1, "owner": 2, "member": 3}

    def test_negative_initial_eth(self, client, sidechain):
        with pytest.raises(InvalidArgument):
            client.set_new_member_initial_eth(-1)
        assert sidechain.sent == []


class TestBridge:

    @pytest.mark.asyncio
    async def test_port_with_private_key(self, client, data_union, sidechain_du, home_amb, foreign_amb,
                                         mainnet, member, relayer):
        sidechain_du.credit(member.address, 100)
        withdrawal = data_union.withdraw(member, RECIPIENT, 0)
        message_hash = client.bridge().extract_bridge_messages(withdrawal)[0].message_hash
        home_amb.affirm(message_hash)

        assert await client.wait_for_sidechain_affirmations(message_hash, 0.01, 0) == 3

        results = await client.port_txs_to_mainnet(withdrawal.tx_hash, "0x" + "33" * 32)

        assert results[0].status is RelayStatus.RELAYED
        assert mainnet.sent[-1][3] == relayer.address.lower()

    @pytest.mark.asyncio
    async def test_port_defaults_to_mainnet_account(self, client, data_union, sidechain_du, home_amb,
                                                    mainnet, member, admin):
        sidechain_du.credit(member.address, 100)
        withdrawal = data_union.withdraw(member, RECIPIENT, 50)
        home_amb.affirm(client.bridge().extract_bridge_messages(withdrawal)[0].message_hash)

        results = await client.port_txs_to_mainnet(withdrawal)

        assert results[0].status is RelayStatus.RELAYED
        assert mainnet.sent[-1][3] == admin.address.lower()

    def test_bridge_uses_config(self, client):
        relay = client.bridge()
        assert relay.poll_interval == 0.01
        assert relay.poll_timeout == 0.05
        assert relay.mainnet_amb_address == FOREIGN_AMB_ADDRESS


class TestWaits:

    @pytest.mark.asyncio
    async def test_wait_for_sidechain_tx(self, client, data_union, member):
        receipt = data_union.add_members(member.address)
        assert await client.wait_for_sidechain_tx(receipt.tx_hash, 0.01, 0) is True

    @pytest.mark.asyncio
    async def test_wait_for_unknown_tx(self, client):
        with pytest.raises(WaitTimeout):
            await client.wait_for_mainnet_tx("0x" + "00" * 32, 0.01, 0.03)

    @pytest.mark.asyncio
    async def test_wait_for_mainnet_balance_change(self, client, mainnet):
        token = mainnet.deploy(MAINNET_TOKEN, FakeToken())
        token.balances[RECIPIENT] = 5
        asyncio.get_running_loop().call_later(0.03, token.balances.__setitem__, RECIPIENT, 105)

        assert await client.wait_for_mainnet_balance_change(5, RECIPIENT, 0.01, 1) == 105

    @pytest.mark.asyncio
    async def test_sidechain_balance_unchanged(self, client, sidechain):
        sidechain.deploy(SIDECHAIN_TOKEN, FakeToken())
        with pytest.raises(WaitTimeout):
            await client.wait_for_sidechain_balance_change(0, RECIPIENT, 0.01, 0.03)
