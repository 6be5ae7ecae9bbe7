from chainvault.client.client import ChainVault

__all__ = ["ChainVault"]
