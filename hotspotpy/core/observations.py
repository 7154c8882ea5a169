"""
Observation records consumed by the hot spot analysis.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from hotspotpy.core.errors import ConfigurationError


@dataclass(frozen=True)
class Observation:
    """
    One projected feature with its analysis value.

    Parameters
    ----------
    id : hashable
        Unique feature identifier.
    location : tuple of float
        Planar (x, y) coordinate.
    value : float
        Analysis field value.
    attributes : mapping
        Other feature attributes, carried through to the output unchanged.
    """

    id: Hashable
    location: Tuple[float, float]
    value: float
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def x(self) -> float:
        return self.location[0]

    @property
    def y(self) -> float:
        return self.location[1]


def validate_observations(observations: Sequence[Observation]) -> List[Observation]:
    """
    Check an observation sequence before analysis.

    Raises
    ------
    ConfigurationError
        If the set is empty or has fewer than two features, ids repeat, or
        a coordinate or value is not finite.
    """
    observations = list(observations)
    n = len(observations)
    if n == 0:
        raise ConfigurationError("No observations supplied")
    if n < 2:
        raise ConfigurationError(
            f"Gi* needs at least 2 observations, got {n}"
        )

    seen = set()
    for obs in observations:
        if obs.id in seen:
            raise ConfigurationError(f"Duplicate observation id: {obs.id!r}")
        seen.add(obs.id)
        try:
            location = np.asarray(obs.location, dtype=np.float64)
            value = float(obs.value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Observation {obs.id!r} has a non-numeric location or value"
            )
        if location.shape != (2,):
            raise ConfigurationError(
                f"Observation {obs.id!r} location must be (x, y), got {obs.location!r}"
            )
        if not np.all(np.isfinite(location)):
            raise ConfigurationError(f"Observation {obs.id!r} has a non-finite location")
        if not np.isfinite(value):
            raise ConfigurationError(f"Observation {obs.id!r} has a non-finite value")

    return observations


def coords_and_values(observations: Sequence[Observation]) -> Tuple[np.ndarray, np.ndarray]:
    """Return (n, 2) coordinates and (n,) values as float64 arrays."""
    coords = np.array([obs.location for obs in observations], dtype=np.float64).reshape(-1, 2)
    values = np.array([obs.value for obs in observations], dtype=np.float64)
    return coords, values


def observations_from_frame(
    df,
    value_col: str,
    x_col: str = "x",
    y_col: str = "y",
    id_col: Optional[str] = None,
) -> List[Observation]:
    """
    Build observations from a pandas DataFrame.

    Parameters
    ----------
    df : pandas.DataFrame
        One row per feature.
    value_col : str
        Column holding the analysis value.
    x_col, y_col : str
        Projected coordinate columns.
    id_col : str, optional
        Identifier column. If None, the DataFrame index is used.

    Returns
    -------
    list of Observation
        In row order. Every other column becomes an attribute.

    Examples
    --------
    >>> df = pd.DataFrame({"x": [0, 1], "y": [0, 0], "crimes": [3, 7]})
    >>> obs = observations_from_frame(df, value_col="crimes")
    >>> obs[1].value
    7.0
    """
    required = [value_col, x_col, y_col] + ([id_col] if id_col is not None else [])
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Missing required columns: {missing}. Available: {list(df.columns)}"
        )

    attr_cols = [c for c in df.columns if c not in required]
    ids = df[id_col].tolist() if id_col is not None else df.index.tolist()
    xs = df[x_col].to_numpy(dtype=np.float64)
    ys = df[y_col].to_numpy(dtype=np.float64)
    vals = df[value_col].to_numpy(dtype=np.float64)
    attrs = df[attr_cols].to_dict(orient="records") if attr_cols else [{} for _ in range(len(df))]

    return [
        Observation(id=ids[i], location=(float(xs[i]), float(ys[i])), value=float(vals[i]),
                    attributes=attrs[i])
        for i in range(len(df))
    ]
