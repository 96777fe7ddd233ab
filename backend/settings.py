"""Chart defaults resolved from the environment."""

from functools import lru_cache
import os

from pydantic import BaseModel, Field

ENV_PREFIX = "HPM_"


class ChartSettings(BaseModel):
    """Tunables used when a request leaves them out."""

    cop_bin_size: float = Field(0.5, gt=0)
    daily_energy_bin_size: float = Field(5.0, gt=0)
    curve_points: int = Field(50, ge=1)
    loess_bandwidth: float = Field(0.8, gt=0)
    irls_max_iterations: int = Field(10, ge=1)
    irls_tolerance: float = Field(1e-4, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> ChartSettings:
    """Read ``HPM_*`` overrides once, e.g. ``HPM_COP_BIN_SIZE=0.25``."""
    overrides = {}
    for name in ChartSettings.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            overrides[name] = value
    return ChartSettings.model_validate(overrides)
