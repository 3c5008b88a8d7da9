"""
Metrics sources for pipeline and training runs.

Nothing here performs ETL or model fitting. The synthetic source draws
plausible-looking numbers so the dashboard has run records to show; a real
integration would implement the same two methods.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np


class MetricsSource(ABC):
    @abstractmethod
    def pipeline_metrics(self) -> Dict:
        """Return ``records_imported`` and ``feature_count`` for a finished import."""

    @abstractmethod
    def training_metrics(self) -> Dict:
        """Return ``accuracy``, ``fairness_score`` and ``deployed_version`` for a finished retrain."""


class SyntheticMetricsSource(MetricsSource):
    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def pipeline_metrics(self) -> Dict:
        return {
            "records_imported": int(self.rng.integers(300, 500)),
            "feature_count": int(self.rng.integers(20, 35)),
        }

    def training_metrics(self) -> Dict:
        return {
            "accuracy": float(self.rng.uniform(0.80, 0.95)),
            "fairness_score": float(self.rng.uniform(0.75, 0.95)),
            "deployed_version": f"v{self.rng.uniform(2.0, 5.0):.1f}",
        }


SOURCES = {
    "synthetic": SyntheticMetricsSource,
}


def build_metrics_source(name: str, seed: Optional[int] = None) -> MetricsSource:
    if name not in SOURCES:
        raise ValueError(f"unknown metrics source {name!r}; expected one of {sorted(SOURCES)}")
    return SOURCES[name](seed)
