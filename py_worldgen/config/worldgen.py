"""
Generator configuration models.

The configuration arrives already deserialized (a mapping) and is validated
with ``WorldGenConf.model_validate``.
"""

from pydantic import BaseModel, Field, model_validator


class PerlinConf(BaseModel):
    """One gradient noise octave."""

    frequency: float = Field(default=0.01, gt=0, description="Spatial frequency of the noise")
    intensity: float = Field(default=1.0, ge=0, description="Amplitude of the octave")


class NumberIntensity(BaseModel):
    number: int = Field(default=1, ge=0, description="How many times the feature is applied")
    intensity: float = Field(default=1.0, description="Strength of each application")


class ClumpConf(BaseModel):
    """Ring-spread height perturbation; a negative amount digs a depression."""

    number: int = Field(default=0, ge=0, description="Number of clumps")
    amount: float = Field(default=0.3, description="Height added to the first ring")
    decay: float = Field(default=0.8, gt=0, lt=1, description="Per-ring decay factor")
    end: float = Field(default=0.01, description="Contribution magnitude that stops the spread")


class HeightMapConf(BaseModel):
    base: float = Field(default=0.0, description="Initial height of every vertex")
    planchon_darboux: bool = Field(default=True, description="Fill closed depressions")
    slopes: NumberIntensity = Field(
        default_factory=lambda: NumberIntensity(number=1, intensity=0.00025)
    )
    perlin1: PerlinConf = Field(default_factory=lambda: PerlinConf(frequency=0.001, intensity=1.0))
    perlin2: PerlinConf = Field(default_factory=lambda: PerlinConf(frequency=0.01, intensity=0.2))
    clumps: ClumpConf = Field(default_factory=ClumpConf)
    depressions: ClumpConf = Field(default_factory=lambda: ClumpConf(amount=-0.3))
    relax_passes: int = Field(default=0, ge=0, description="Jacobi smoothing passes")
    relax_strength: float = Field(default=0.5, ge=0, le=1, description="Weight of the neighbor mean")


class RainConf(BaseModel):
    height_coeff: float = Field(default=0.5, description="Rain added per unit of elevation")
    perlin: PerlinConf = Field(default_factory=lambda: PerlinConf(frequency=0.01, intensity=0.5))


class WindConf(BaseModel):
    """Vapor transport by clouds released from the map border."""

    enabled: bool = Field(default=True, description="Simulate wind-driven rain")
    initial_vapor: float = Field(default=10.0, ge=0, description="Vapor carried by a new cloud")
    water_pickup: float = Field(default=0.1, ge=0, description="Vapor gained per step over water")
    low_rain_rate: float = Field(default=0.01, ge=0, le=1, description="Fraction rained over low land")
    high_rain_rate: float = Field(default=0.02, ge=0, le=1, description="Fraction rained over high ground")
    high_ground: float = Field(default=0.6, description="Elevation where the high rate starts")
    peak: float = Field(default=0.95, description="Elevation where a cloud rains everything")
    drift_degrees: float = Field(default=2.5, ge=0, description="Maximum heading change per step")
    tolerance_degrees: float = Field(default=40.0, gt=0, le=180, description="Heading tolerance for moving on")


class HydrologyConf(BaseModel):
    min_river_flux: float = Field(default=50.0, ge=0, description="Edge flux above which an edge is a river")
    rain_smoothing: int = Field(default=3, ge=0, description="Averaging passes over wind-driven rainfall")
    rain: RainConf = Field(default_factory=RainConf)
    wind: WindConf = Field(default_factory=WindConf)


class ThermologyConf(BaseModel):
    band_intensity: float = Field(default=0.8, description="Weight of the latitude band")
    perlin: PerlinConf = Field(default_factory=lambda: PerlinConf(frequency=0.005, intensity=0.2))
    water_scale: float = Field(default=0.5, ge=0, description="Multiplier applied over water")
    water_cap: float = Field(default=40.0, description="Upper bound of temperature over water")
    altitude_comfort: float = Field(default=1.5, description="Elevation term of the altitude penalty")


class TerrainConf(BaseModel):
    remove_land_stragglers: bool = Field(
        default=True, description="Sink land cells whose neighbors are all water"
    )


class Measure(BaseModel):
    """Linear range used to bring a physical quantity into [0, 1]."""

    name: str
    symbol: str
    min: float = 0.0
    max: float = 1.0

    @model_validator(mode="after")
    def check_range(self):
        if self.max <= self.min:
            raise ValueError(f"Measure {self.name}: max must exceed min")
        return self

    def normalize(self, x: float) -> float:
        return (x - self.min) / (self.max - self.min)


class BiomeConf(BaseModel):
    rain: Measure = Field(default_factory=lambda: Measure(name="Rainfall", symbol="rain", min=0.0, max=2.0))
    drainage: Measure = Field(
        default_factory=lambda: Measure(name="Drainage", symbol="drainage", min=0.0, max=100.0)
    )
    ground_smoothing: int = Field(default=2, ge=0, description="Jacobi passes over ground composition")


class ReflowConf(BaseModel):
    """Perturbation layered on an existing heightmap."""

    frequency: float = Field(default=0.001, gt=0, description="Noise frequency")
    intensity: float = Field(default=0.2, ge=0, description="Noise amplitude")
    clumps: ClumpConf = Field(default_factory=ClumpConf)


class WorldGenConf(BaseModel):
    heightmap: HeightMapConf = Field(default_factory=HeightMapConf)
    hydrology: HydrologyConf = Field(default_factory=HydrologyConf)
    thermology: ThermologyConf = Field(default_factory=ThermologyConf)
    terrain: TerrainConf = Field(default_factory=TerrainConf)
    biome: BiomeConf = Field(default_factory=BiomeConf)
