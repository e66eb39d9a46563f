"""Configuration module for py-worldgen."""

from .settings import Settings
from .worldgen import (
    BiomeConf,
    ClumpConf,
    HeightMapConf,
    HydrologyConf,
    Measure,
    NumberIntensity,
    PerlinConf,
    RainConf,
    ReflowConf,
    TerrainConf,
    ThermologyConf,
    WindConf,
    WorldGenConf,
)

__all__ = [
    "Settings",
    "BiomeConf",
    "ClumpConf",
    "HeightMapConf",
    "HydrologyConf",
    "Measure",
    "NumberIntensity",
    "PerlinConf",
    "RainConf",
    "ReflowConf",
    "TerrainConf",
    "ThermologyConf",
    "WindConf",
    "WorldGenConf",
]
