"""
Factory for tracking link code strategies.
Caches one instance per strategy type.
"""

from enum import Enum

from diagnostics_app.config import settings
from diagnostics_app.services.link_code_strategies import (
    LinkCodeStrategy,
    RandomHexLinkCodeStrategy,
    Base62LinkCodeStrategy,
)


class LinkCodeStrategyType(Enum):
    """Available link code generation strategies"""
    RANDOM_HEX = "random_hex"
    BASE62 = "base62"


class LinkCodeFactory:
    """Factory for creating link code strategies with caching"""

    _instances = {}

    @classmethod
    def create_strategy(cls, strategy_type: LinkCodeStrategyType = None) -> LinkCodeStrategy:
        """
        Create or return cached link code strategy.

        Args:
            strategy_type: Type of strategy to create.
                          If None, uses value from settings.

        Raises:
            ValueError: If strategy_type is unknown
        """
        if strategy_type is None:
            strategy_type = LinkCodeStrategyType(settings.link_code_strategy)

        if strategy_type in cls._instances:
            return cls._instances[strategy_type]

        if strategy_type == LinkCodeStrategyType.RANDOM_HEX:
            instance = RandomHexLinkCodeStrategy(
                num_bytes=settings.link_code_bytes,
                max_retries=settings.max_retries,
            )
        elif strategy_type == LinkCodeStrategyType.BASE62:
            instance = Base62LinkCodeStrategy(
                salt=settings.link_code_salt,
                max_length=settings.link_code_max_length,
                max_retries=settings.max_retries,
            )
        else:
            raise ValueError(f"Unknown strategy type: {strategy_type}")

        cls._instances[strategy_type] = instance
        return instance

    @classmethod
    def clear_instances(cls):
        """Forget cached strategies (for testing)"""
        cls._instances = {}
