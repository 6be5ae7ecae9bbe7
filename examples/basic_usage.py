"""
Basic usage example of ChainVault.

Creates an account, logs in, stores an encrypted note and reads it back.
The service must be running at CHAINVAULT_BASE_URL (default localhost:8080).
"""

import logging
import sys

from chainvault import ChainVault, SDKError


def main() -> None:
    # Configure logging
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    try:
        with ChainVault() as vault:
            account = vault.auth.create_account()
            logger.info("Account created: %s", account.subject_id)

            session = vault.auth.login(account.secret)
            logger.info("Logged in, session valid for %ss", session.expires_in)

            receipt = vault.data.submit("notes", "hello from the basic example")
            logger.info(
                "Stored collection %s in block %s",
                receipt.collection_id,
                receipt.block_number,
            )

            for item in vault.data.list_collections():
                logger.info("Collection %s: %s", item.collection_id, item.label)

            collection = vault.data.decrypt(receipt.collection_id)
            logger.info("Decrypted: %s", collection.data)

        logger.info("Basic usage example completed")
    except SDKError:
        logger.exception("Error")
        sys.exit(1)


if __name__ == "__main__":
    main()
