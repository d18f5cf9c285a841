"""
K-means palette selection.

Lloyd iterations under the perceptual metric. The assignment step runs in
parallel over pixel batches against read-only centroids; the centroid update
is a reduction performed on the calling thread, so every iteration sees the
previous iteration's centroids in full.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from loguru import logger

from chromasift.config import config
from chromasift.services.quantization.distance import nearest_color_indices, perceptual_distance
from chromasift.services.reliability import CancellationToken, check_cancelled
from chromasift.utils.batching import run_row_batches

# Pixels per assignment batch
ASSIGN_BATCH = 4096


@dataclass
class KMeansOutcome:
    centroids: np.ndarray
    weights: np.ndarray
    iterations: int
    converged: bool


def sample_pixels(pixels: np.ndarray, max_samples: int, seed: int) -> np.ndarray:
    """Deterministic subsample of at most ``max_samples`` pixels."""
    if pixels.shape[0] <= max_samples:
        return pixels
    rng = np.random.default_rng(seed)
    idx = rng.choice(pixels.shape[0], size=max_samples, replace=False)
    return pixels[np.sort(idx)]


def _partial_sums(pixels: np.ndarray, centroids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    labels = nearest_color_indices(pixels, centroids)
    k = centroids.shape[0]
    counts = np.bincount(labels, minlength=k).astype(np.float64)
    sums = np.stack(
        [np.bincount(labels, weights=pixels[:, c], minlength=k) for c in range(3)],
        axis=1,
    )
    return sums, counts


def assign_counts(pixels: np.ndarray, centroids: np.ndarray,
                  cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
    """Number of pixels nearest to each centroid."""
    counts = run_row_batches(
        lambda rows: np.bincount(nearest_color_indices(pixels[rows], centroids),
                                 minlength=centroids.shape[0]),
        pixels.shape[0],
        cancel_token,
        operation="palette assignment",
        batch_rows=ASSIGN_BATCH,
    )
    return np.sum(counts, axis=0).astype(np.float64)


def kmeans_palette(pixels: np.ndarray, n_colors: int, max_iterations: int,
                   seed: int = config.RNG_SEED,
                   cancel_token: Optional[CancellationToken] = None,
                   max_samples: Optional[int] = None,
                   convergence: Optional[float] = None) -> KMeansOutcome:
    """
    Cluster pixels into at most ``n_colors`` representative colors.

    Args:
        pixels: Array (N, 3) of normalized RGB, N >= 1
        n_colors: Target number of clusters
        max_iterations: Upper bound on Lloyd iterations
        seed: Seed for sampling and centroid initialization
        cancel_token: Checked before each iteration and each batch
        max_samples: Pixels used to fit centroids, defaults to ``config.KMEANS_MAX_SAMPLES``
        convergence: Largest centroid move treated as converged,
            defaults to ``config.KMEANS_CONVERGENCE``

    Returns:
        KMeansOutcome with centroids, pixel-share weights over all pixels,
        the number of iterations run and whether it converged

    Raises:
        OperationCancelledError: If the token is cancelled
    """
    max_samples = max_samples or config.KMEANS_MAX_SAMPLES
    threshold = config.KMEANS_CONVERGENCE if convergence is None else convergence

    fit_pixels = sample_pixels(pixels, max_samples, seed)

    # Initialize from distinct sampled colors so no two centroids start equal
    unique_colors = np.unique(fit_pixels, axis=0)
    k = min(n_colors, unique_colors.shape[0])
    rng = np.random.default_rng(seed)
    centroids = unique_colors[np.sort(rng.choice(unique_colors.shape[0], size=k, replace=False))]

    logger.debug(f"K-means: {pixels.shape[0]} pixels, {fit_pixels.shape[0]} sampled, k={k}")

    iterations = 0
    converged = False
    for _ in range(max_iterations):
        check_cancelled(cancel_token, "k-means iteration")

        frozen = centroids.copy()
        partials = run_row_batches(
            lambda rows: _partial_sums(fit_pixels[rows], frozen),
            fit_pixels.shape[0],
            cancel_token,
            operation="k-means assignment",
            batch_rows=ASSIGN_BATCH,
        )

        sums = np.sum([p[0] for p in partials], axis=0)
        counts = np.sum([p[1] for p in partials], axis=0)

        # Empty clusters keep their previous centroid
        updated = frozen.copy()
        filled = counts > 0
        updated[filled] = sums[filled] / counts[filled][:, None]

        shift = float(np.max(perceptual_distance(updated, frozen))) if k else 0.0
        centroids = updated
        iterations += 1

        if shift <= threshold:
            converged = True
            break

    counts = assign_counts(pixels, centroids, cancel_token)
    weights = counts / max(1.0, counts.sum())

    logger.debug(f"K-means finished after {iterations} iteration(s), converged={converged}")
    return KMeansOutcome(centroids=centroids, weights=weights, iterations=iterations, converged=converged)
