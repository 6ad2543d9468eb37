"""Run configuration for the copula risk forecast."""

from dataclasses import dataclass, field, fields
from typing import List, Optional


@dataclass
class ForecastConfig:
    """Settings for one forecast run"""
    assets: Optional[List[str]] = None
    start: Optional[str] = None
    end: Optional[str] = None
    frequency: str = 'daily'
    drop_incomplete: bool = False  # drop dates with a missing price instead of failing
    min_observations: int = 250
    horizon: int = 10
    n_replicates: int = 1000
    alpha: float = 0.99
    ci_level: float = 0.95
    random_seed: int = 42
    gof_reps: int = 100
    gof_statistic: str = 'SnB'
    copula_families: List[str] = field(default_factory=lambda: ['gumbel', 't'])
    simulation_copula: str = 't'  # 'auto' selects the lowest AIC fit
    parallel: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.frequency not in ('daily', 'weekly'):
            raise ValueError("frequency must be either 'daily' or 'weekly'")
        if not 0.5 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0.5, 1): {self.alpha}")
        if not 0 < self.ci_level < 1:
            raise ValueError(f"ci_level must be in (0, 1): {self.ci_level}")
        if self.horizon < 1 or self.n_replicates < 1:
            raise ValueError("horizon and n_replicates must be positive")
        unknown = set(self.copula_families) - {'gumbel', 't'}
        if unknown:
            raise ValueError(f"Unknown copula families: {sorted(unknown)}")
        if (self.simulation_copula != 'auto'
                and self.simulation_copula not in self.copula_families):
            raise ValueError(
                f"simulation_copula {self.simulation_copula!r} is not among "
                f"the fitted families {self.copula_families}"
            )

    @classmethod
    def from_dict(cls, values: dict) -> 'ForecastConfig':
        """Build config from a mapping, ignoring unknown and None entries"""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in names and v is not None})
