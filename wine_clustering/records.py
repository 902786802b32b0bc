from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List, Tuple

WINE_COLUMNS: List[str] = [
    "Alcohol",
    "Malic_Acid",
    "Ash",
    "Ash_Alcanity",
    "Magnesium",
    "Total_Phenols",
    "Flavanoids",
    "Nonflavanoid_Phenols",
    "Proanthocyanins",
    "Color_Intensity",
    "Hue",
    "OD280",
    "Proline",
]


@dataclass(frozen=True)
class WineRecord:
    """One wine sample; field order matches the CSV column order."""

    Alcohol: float
    Malic_Acid: float
    Ash: float
    Ash_Alcanity: float
    Magnesium: float
    Total_Phenols: float
    Flavanoids: float
    Nonflavanoid_Phenols: float
    Proanthocyanins: float
    Color_Intensity: float
    Hue: float
    OD280: float
    Proline: float


RECORD_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(WineRecord))


@dataclass(frozen=True)
class ClusterAssignment:
    cluster_id: int
    scores: Tuple[float, ...]

    @property
    def closest_cluster(self) -> int:
        return min(range(len(self.scores)), key=self.scores.__getitem__)


# Hand-authored inference samples used when the config does not list any.
DEFAULT_SAMPLES: List[WineRecord] = [
    WineRecord(
        Alcohol=13.4,
        Malic_Acid=2.3,
        Ash=2.5,
        Ash_Alcanity=19.8,
        Magnesium=99.5,
        Total_Phenols=2.5,
        Flavanoids=2.3,
        Nonflavanoid_Phenols=0.2,
        Proanthocyanins=1.3,
        Color_Intensity=3.1,
        Hue=0.6,
        OD280=2.1,
        Proline=1050.0,
    ),
    WineRecord(
        Alcohol=14.0,
        Malic_Acid=1.8,
        Ash=2.4,
        Ash_Alcanity=20.5,
        Magnesium=99.0,
        Total_Phenols=2.4,
        Flavanoids=2.1,
        Nonflavanoid_Phenols=0.3,
        Proanthocyanins=1.2,
        Color_Intensity=3.0,
        Hue=0.7,
        OD280=2.0,
        Proline=1030.0,
    ),
]
