# Common utilities
from chainvault.common.crypto import CryptoEngine as CryptoEngine
from chainvault.common.logging_utils import setup_logger as setup_logger
from chainvault.common.mixins import Configurable as Configurable

__all__ = ["Configurable", "CryptoEngine", "setup_logger"]
