#!/usr/bin/env python3

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from dataunion_relayer.client import DataUnionClient
from dataunion_relayer.errors import DataUnionError, InvalidArgument
from dataunion_relayer.models import RelayStatus

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Relay the bridge messages of a sidechain withdrawal to mainnet."""
    parser = argparse.ArgumentParser(description="Data Union bridge relayer")
    subparsers = parser.add_subparsers(dest="command", required=True)
    relay = subparsers.add_parser("relay", help="Port a sidechain withdrawal transaction to mainnet")
    relay.add_argument("tx_hash", help="Sidechain withdrawal transaction hash")
    args = parser.parse_args()

    # Local overrides for the environment variables read by ClientConfig
    load_dotenv(Path(__file__).parent / ".env")

    try:
        client = DataUnionClient.from_env()
    except InvalidArgument as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Required environment variables:")
        logger.error("  - MAINNET_PRIVATE_KEY: Key paying for mainnet relay transactions")
        logger.error("  - SIDECHAIN_PRIVATE_KEY: Data union admin key on the sidechain")
        logger.error("Optional: MAINNET_RPC_URL, SIDECHAIN_RPC_URL, MAINNET_FACTORY_ADDRESS,")
        logger.error("  SIDECHAIN_FACTORY_ADDRESS, BRIDGE_POLL_INTERVAL, BRIDGE_POLL_TIMEOUT")
        sys.exit(1)

    try:
        results = await client.port_txs_to_mainnet(args.tx_hash)
    except DataUnionError as e:
        logger.error(f"Relay failed: {e}")
        sys.exit(1)

    for result in results:
        logger.info(f"{result.message}: {result.status.value}")

    if any(result.status is RelayStatus.FAILED for result in results):
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
