"""
Hot spot analysis (Getis-Ord Gi*) over a set of observations.

Sequential prerequisites (spatial index, distance threshold, global summary)
are computed once; per-feature weight rows and Gi* statistics then run on a
thread pool in contiguous chunks. Results are stored by input position, so
output order never depends on completion order.
"""

import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, replace
from typing import Hashable, Iterable, List, Mapping, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed

from hotspotpy.core.assembly import assemble_results
from hotspotpy.core.config import HotspotConfig
from hotspotpy.core.errors import (
    Cancelled,
    ConfigurationError,
    Failed,
    InternalInvariantViolation,
    Ok,
    Outcome,
    RunDiagnostics,
)
from hotspotpy.core.observations import (
    Observation,
    coords_and_values,
    observations_from_frame,
    validate_observations,
)
from hotspotpy.core.progress import NullProgressMonitor, ProgressMonitor
from hotspotpy.core.statistics import (
    ClusterClass,
    GiResult,
    GlobalSummary,
    compute_gi_star,
    compute_global_summary,
)
from hotspotpy.core.weights import WeightMatrixBuilder
from hotspotpy.neighbors.kdtree import SpatialIndex
from hotspotpy.stats.fdr import apply_fdr_correction
from hotspotpy.stats.permutation import conditional_permutation_pvalue, feature_rng

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ExecutionContext:
    """Everything a worker reads. Built fresh for every call, never mutated."""

    config: HotspotConfig
    observations: tuple
    values: np.ndarray
    index: SpatialIndex
    summary: GlobalSummary
    builder: WeightMatrixBuilder


def _compute_feature(ctx: _ExecutionContext, i: int) -> GiResult:
    row = ctx.builder.build_row(i)
    result = compute_gi_star(row, ctx.values, ctx.summary)
    if ctx.config.n_permutations > 0 and not np.isnan(result.z_score):
        pseudo_p = conditional_permutation_pvalue(
            row,
            ctx.values,
            ctx.summary,
            result.z_score,
            n_permutations=ctx.config.n_permutations,
            rng=feature_rng(ctx.config.random_seed, i),
        )
        result = replace(result, pseudo_p_value=pseudo_p)
    return result


def _compute_chunk(ctx: _ExecutionContext, indices: np.ndarray, monitor) -> List[GiResult]:
    out = []
    for i in indices:
        if monitor.is_cancelled():
            break
        out.append(_compute_feature(ctx, int(i)))
    return out


def _resolve_n_jobs(n_jobs: int) -> int:
    if n_jobs > 0:
        return n_jobs
    n_cpu = os.cpu_count() or 1
    return max(1, n_cpu + 1 + n_jobs)


def _make_chunks(n: int, n_jobs: int, chunk_size: Optional[int]) -> List[np.ndarray]:
    indices = np.arange(n)
    if chunk_size is not None:
        return [indices[s:s + chunk_size] for s in range(0, n, chunk_size)]
    n_chunks = min(n, max(n_jobs * 4, 1))
    return [c for c in np.array_split(indices, n_chunks) if len(c)]


def _build_context(
    observations: Sequence[Observation],
    config: HotspotConfig,
    adjacency,
    threshold_estimator,
    monitor,
) -> _ExecutionContext:
    coords, values = coords_and_values(observations)
    ids = [obs.id for obs in observations]

    index = SpatialIndex(coords, distance_method=config.distance_method)
    monitor.progress(0.10, "Spatial index built")

    summary = compute_global_summary(values)
    monitor.progress(0.20, "Global summary computed")
    logger.info(
        f"Global summary: n={summary.n}, mean={summary.mean:.6g}, "
        f"std={summary.population_std:.6g}"
    )
    if summary.is_degenerate:
        logger.warning("Analysis values are constant; every Gi* z-score will be NaN")

    builder = WeightMatrixBuilder(
        index, ids, config, adjacency=adjacency, estimator=threshold_estimator
    )
    return _ExecutionContext(
        config=config,
        observations=tuple(observations),
        values=values,
        index=index,
        summary=summary,
        builder=builder,
    )


def local_g_statistics(
    observations: Iterable[Observation],
    config: Optional[HotspotConfig] = None,
    monitor: Optional[ProgressMonitor] = None,
    adjacency: Optional[Mapping[Hashable, Iterable[Hashable]]] = None,
    threshold_estimator=None,
) -> Outcome:
    """
    Identify statistically significant hot and cold spots with Gi*.

    Parameters
    ----------
    observations : iterable of Observation
        Projected features with their analysis values, in output order.
    config : HotspotConfig, optional
        Neighbor model and run options. Default: ``HotspotConfig()``.
    monitor : ProgressMonitor, optional
        Progress sink and cancellation signal. Default: no-op.
    adjacency : mapping, optional
        ``{id: neighbor ids}`` for POLYGON_CONTIGUITY.
    threshold_estimator : ThresholdEstimator or callable, optional
        Overrides the configured default-threshold rule.

    Returns
    -------
    Ok
        ``records`` is a DataFrame with one row per observation in input
        order; ``diagnostics`` summarizes the run.
    Cancelled
        The monitor requested cancellation. No usable results.
    Failed
        Input or configuration was rejected before computation.

    Raises
    ------
    InternalInvariantViolation
        If the computed results do not cover the input exactly.

    Examples
    --------
    >>> obs = [Observation(i, (float(i), 0.0), v) for i, v in enumerate([1, 1, 1, 1, 100])]
    >>> outcome = local_g_statistics(obs, HotspotConfig(search_distance=1.5))
    >>> outcome.unwrap()["gi_zscore"].idxmax()
    4
    """
    start = time.perf_counter()
    monitor = monitor if monitor is not None else NullProgressMonitor()
    observations = list(observations)
    n = len(observations)

    try:
        config = replace(config if config is not None else HotspotConfig()).validate()
        observations = validate_observations(observations)
        if monitor.is_cancelled():
            return Cancelled(completed=0, total=n)
        ctx = _build_context(observations, config, adjacency, threshold_estimator, monitor)
    except ConfigurationError as exc:
        logger.error(f"Hot spot analysis rejected: {exc}")
        return Failed(error=exc, message=str(exc))

    n_jobs = _resolve_n_jobs(config.n_jobs)
    chunks = _make_chunks(n, n_jobs, config.chunk_size)
    logger.info(
        f"Computing Gi* for {n} features ({config.spatial_concept.value}, "
        f"threshold={ctx.builder.threshold:.6g}) using {n_jobs} worker(s), {len(chunks)} chunks"
    )

    results: List[Optional[GiResult]] = [None] * n
    completed = 0
    cancelled = False
    parallel = Parallel(n_jobs=n_jobs, prefer="threads", return_as="generator")
    chunk_results = parallel(delayed(_compute_chunk)(ctx, chunk, monitor) for chunk in chunks)

    # Drain every chunk; once cancelled, pending chunks return immediately
    for k, chunk_out in enumerate(chunk_results):
        chunk = chunks[k]
        for i, r in zip(chunk, chunk_out):
            results[int(i)] = r
        completed += len(chunk_out)
        if len(chunk_out) < len(chunk):
            cancelled = True
        if not cancelled:
            monitor.progress(0.20 + 0.70 * completed / n, f"{completed}/{n} features processed")
            logger.debug(f"Chunk done: {completed}/{n} features")

    if cancelled or monitor.is_cancelled():
        logger.warning(f"Hot spot analysis cancelled after {completed}/{n} features")
        return Cancelled(completed=completed, total=n)

    missing = [observations[i].id for i, r in enumerate(results) if r is None]
    if missing:
        raise InternalInvariantViolation(f"No Gi* result computed for ids {missing[:10]}")

    if config.apply_fdr:
        results = apply_fdr_correction(results)

    records = assemble_results(
        observations,
        results,
        include_diagnostics=True,
        include_pseudo_p=config.n_permutations > 0,
    )
    monitor.progress(1.0, "Results assembled")

    diagnostics = _diagnostics(ctx, results, time.perf_counter() - start)
    if diagnostics.n_starved:
        logger.warning(
            f"{diagnostics.n_starved} feature(s) have no neighbors within "
            f"{ctx.builder.threshold:.6g}; classified as not_enough_neighbors"
        )
    logger.info(f"Hot spot analysis complete in {diagnostics.elapsed:.2f}s: {diagnostics.class_counts}")
    return Ok(records=records, diagnostics=diagnostics)


def _diagnostics(ctx: _ExecutionContext, results: Sequence[GiResult], elapsed: float) -> RunDiagnostics:
    counts = Counter(r.cluster_class.value for r in results)
    n_starved = counts.get(ClusterClass.NOT_ENOUGH_NEIGHBORS.value, 0)
    n_degenerate = sum(
        1 for r in results
        if np.isnan(r.z_score) and r.cluster_class is not ClusterClass.NOT_ENOUGH_NEIGHBORS
    )
    return RunDiagnostics(
        threshold=ctx.builder.threshold,
        n=ctx.summary.n,
        mean=ctx.summary.mean,
        population_std=ctx.summary.population_std,
        n_starved=n_starved,
        n_degenerate=n_degenerate,
        class_counts=dict(counts),
        elapsed=elapsed,
    )


def local_g_from_frame(
    df,
    value_col: str,
    x_col: str = "x",
    y_col: str = "y",
    id_col: Optional[str] = None,
    config: Optional[HotspotConfig] = None,
    monitor: Optional[ProgressMonitor] = None,
    adjacency=None,
    threshold_estimator=None,
) -> Outcome:
    """
    Run ``local_g_statistics`` on a DataFrame with one row per feature.

    Columns other than the coordinate, value and id columns are carried into
    the output unchanged.

    Examples
    --------
    >>> outcome = local_g_from_frame(df, value_col="crimes", config=HotspotConfig(search_distance=500))
    >>> outcome.unwrap().query("gi_bin == 3")
    """
    try:
        observations = observations_from_frame(
            df, value_col=value_col, x_col=x_col, y_col=y_col, id_col=id_col
        )
    except ConfigurationError as exc:
        logger.error(f"Hot spot analysis rejected: {exc}")
        return Failed(error=exc, message=str(exc))
    return local_g_statistics(
        observations,
        config=config,
        monitor=monitor,
        adjacency=adjacency,
        threshold_estimator=threshold_estimator,
    )
