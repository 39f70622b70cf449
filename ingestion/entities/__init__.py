"""
Entity strategies plugged into the generic pipeline.

Usage:
    from ingestion.entities import get_strategy

    strategy = get_strategy("carelog")
"""

from typing import Dict, Type

from core.exceptions import ConfigurationError
from ingestion.entities.base import EntityStrategy
from ingestion.entities.caregiver import CaregiverStrategy
from ingestion.entities.carelog import CarelogStrategy

ENTITY_STRATEGIES: Dict[str, Type[EntityStrategy]] = {
    CaregiverStrategy.name: CaregiverStrategy,
    CarelogStrategy.name: CarelogStrategy,
}


def get_strategy(name: str) -> EntityStrategy:
    """
    Look up a strategy by entity name.

    Raises:
        ConfigurationError: for an unknown entity
    """
    try:
        strategy_cls = ENTITY_STRATEGIES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown entity '{name}'",
            context={"entity": name, "known": sorted(ENTITY_STRATEGIES)}
        )
    return strategy_cls()


__all__ = ["EntityStrategy", "CaregiverStrategy", "CarelogStrategy", "ENTITY_STRATEGIES", "get_strategy"]
