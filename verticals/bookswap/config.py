"""BookSwap vertical configuration.

Re-exports BookSwapConfig from the patterns module, read once from the
environment (BOOKSWAP_* variables).
"""

from patterns.domain_config import BookSwapConfig

config = BookSwapConfig.from_env()
