"""
Voting strategies for governance.

A strategy turns a voter's effective power into the weight recorded on the
ballot. Strategies are looked up per DAO by ``VotingStrategyKind`` through a
``StrategyRegistry``, so any of them can be swapped without touching the
tally.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..errors.exceptions import ValidationError
from .core import BASIS_POINTS, GovernanceSettings, VotingStrategyKind


class VotingStrategy(ABC):
    """Abstract base class for voting strategies."""

    name = "abstract"

    @abstractmethod
    def adjust(self, power: int) -> int:
        """Map effective power to ballot weight."""
        pass

    def __call__(self, power: int) -> int:
        return self.adjust(power)

    def get_strategy_info(self) -> Dict[str, Any]:
        """Get information about this strategy."""
        return {"name": self.name, "class": type(self).__name__}


class IdentityStrategy(VotingStrategy):
    """One unit of power, one unit of weight."""

    name = "identity"

    def adjust(self, power: int) -> int:
        return power


class IntegerSquareRootStrategy(VotingStrategy):
    """Quadratic voting: weight is the integer square root of power."""

    name = "integer_sqrt"

    def adjust(self, power: int) -> int:
        if power < 0:
            raise ValidationError("Voting power cannot be negative", field="power", value=power)
        return math.isqrt(power)


class WeightedMultiplierStrategy(VotingStrategy):
    """Scales power by a multiplier given in basis points."""

    name = "weighted"

    def __init__(self, weight_bps: int = BASIS_POINTS):
        if weight_bps < 0:
            raise ValidationError("Weight cannot be negative", field="weight_bps", value=weight_bps)
        self.weight_bps = weight_bps

    def adjust(self, power: int) -> int:
        return power * self.weight_bps // BASIS_POINTS

    def get_strategy_info(self) -> Dict[str, Any]:
        info = super().get_strategy_info()
        info["weight_bps"] = self.weight_bps
        return info


class StrategyRegistry:
    """Maps each ``VotingStrategyKind`` to a strategy instance."""

    def __init__(self, strategies: Optional[Dict[VotingStrategyKind, VotingStrategy]] = None):
        self._strategies: Dict[VotingStrategyKind, VotingStrategy] = {}
        for kind in VotingStrategyKind:
            self._strategies[kind] = IdentityStrategy()
        for kind, strategy in (strategies or {}).items():
            self.register(kind, strategy)

    @classmethod
    def reference(cls) -> "StrategyRegistry":
        """Every kind passes power through unchanged."""
        return cls()

    @classmethod
    def corrected(cls, weight_bps: int = BASIS_POINTS) -> "StrategyRegistry":
        """Quadratic uses integer square root; weighted applies ``weight_bps``."""
        return cls(
            {
                VotingStrategyKind.QUADRATIC: IntegerSquareRootStrategy(),
                VotingStrategyKind.WEIGHTED: WeightedMultiplierStrategy(weight_bps),
            }
        )

    @classmethod
    def from_settings(cls, settings: GovernanceSettings) -> "StrategyRegistry":
        if settings.corrected_strategies:
            return cls.corrected(settings.weighted_multiplier_bps)
        return cls.reference()

    def register(self, kind: VotingStrategyKind, strategy: VotingStrategy) -> None:
        """Replace the strategy used for ``kind``."""
        if not isinstance(strategy, VotingStrategy):
            raise ValidationError("Strategy must inherit from VotingStrategy")
        self._strategies[VotingStrategyKind(kind)] = strategy

    def get(self, kind: VotingStrategyKind) -> VotingStrategy:
        return self._strategies[VotingStrategyKind(kind)]

    def describe(self) -> Dict[str, Dict[str, Any]]:
        return {kind.name: strategy.get_strategy_info() for kind, strategy in self._strategies.items()}
