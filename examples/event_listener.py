"""
Event stream example.

Subscribes to block and collection updates using the stored secret, then
submits a collection so at least one event arrives.
"""

import logging
import sys
import time

from chainvault import ChainVault, EventType, SDKError


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    def on_error(error: Exception) -> None:
        logger.error("Background failure: %s", error)

    try:
        with ChainVault(on_error_callback=on_error) as vault:
            if not vault.auth.secret:
                vault.auth.create_account()
            vault.auth.login()

            vault.ws.subscribe(
                EventType.BLOCKCHAIN_UPDATE,
                lambda data: logger.info("Block update: %s", data),
            )
            vault.ws.subscribe(
                EventType.COLLECTION_UPDATE,
                lambda data: logger.info("Collection update: %s", data),
            )
            vault.ws.connect()

            time.sleep(1)
            vault.data.submit("events-demo", "trigger an update")

            # Listen for a while
            time.sleep(10)
    except SDKError:
        logger.exception("Error")
        sys.exit(1)


if __name__ == "__main__":
    main()
