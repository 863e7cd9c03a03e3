from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, TypeVar

import numpy as np

T = TypeVar("T")

# below this many rows per band the thread hand-off costs more than it saves
MIN_BAND_ROWS = 64


def map_row_bands(
    fn: Callable[[np.ndarray, int], T],
    pixels: np.ndarray,
    workers: int = 1,
    min_band_rows: int = MIN_BAND_ROWS,
) -> List[T]:
    """
    Run fn(band, first_row) over horizontal bands of *pixels*.

    Results come back in top-to-bottom band order regardless of which worker
    finished first, so any reduction over them is deterministic.
    """
    height = pixels.shape[0]
    n_bands = min(max(1, workers), max(1, height // min_band_rows))
    if n_bands == 1:
        return [fn(pixels, 0)]

    edges = np.linspace(0, height, n_bands + 1).astype(int)
    bands = [(pixels[start:stop], int(start)) for start, stop in zip(edges[:-1], edges[1:])]
    with ThreadPoolExecutor(max_workers=n_bands) as executor:
        return list(executor.map(lambda job: fn(*job), bands))
