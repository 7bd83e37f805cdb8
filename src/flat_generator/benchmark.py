"""Benchmark comparing flat delegation with native ``yield from`` chains."""

import gc
import logging
import time
import tracemalloc
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .allocator_interface import allocator_arg
from .allocators import MemoryPoolAllocator
from .config import BenchmarkConfig
from .generator import Generator, generator
from .ranges import elements_of

logger = logging.getLogger(__name__)


@generator
def recursive_sequence(depth: int, elements_per_level: int = 1):
    """Yield ``depth``, delegate to ``depth - 1``, then yield ``-depth``.

    For a starting depth of 3 and one element per level the sequence is
    ``[3, 2, 1, 0, -1, -2, -3]``.
    """
    for _ in range(elements_per_level):
        yield depth
    if depth > 0:
        yield elements_of(recursive_sequence(depth - 1, elements_per_level))
        for _ in range(elements_per_level):
            yield -depth


@generator(allocator=MemoryPoolAllocator)
def pooled_recursive_sequence(tag, allocator, depth: int, elements_per_level: int = 1):
    """Same sequence as ``recursive_sequence`` with every frame drawn from
    ``allocator``."""
    for _ in range(elements_per_level):
        yield depth
    if depth > 0:
        yield elements_of(
            pooled_recursive_sequence(tag, allocator, depth - 1, elements_per_level)
        )
        for _ in range(elements_per_level):
            yield -depth


def native_recursive_sequence(depth: int, elements_per_level: int = 1) -> Iterator[int]:
    """Reference sequence built from plain ``yield from`` delegation."""
    for _ in range(elements_per_level):
        yield depth
    if depth > 0:
        yield from native_recursive_sequence(depth - 1, elements_per_level)
        for _ in range(elements_per_level):
            yield -depth


def drain(sequence: Iterable) -> int:
    """Consume a sequence and return how many elements it produced."""
    count = 0
    for _ in sequence:
        count += 1
    if isinstance(sequence, Generator):
        sequence.close()
    return count


class DelegationBenchmark:
    """
    Measures per-element cost of deep delegation chains.

    The flat variant runs through this package's engine, whose per-step cost
    does not depend on the depth of the chain. The native variant uses
    ``yield from``, where every step travels through all intermediate levels.
    """

    def __init__(self, config: BenchmarkConfig, logger: Optional[logging.Logger] = None):
        """
        Initialize benchmark.

        Args:
            config: Benchmark configuration
            logger: Logger instance
        """
        self.config = config
        self._logger = logger or logging.getLogger(__name__)

    def run(self) -> pd.DataFrame:
        """
        Run every variant at every configured depth.

        Returns:
            DataFrame with one row per (depth, variant)
        """
        rows: List[Dict] = []
        for depth in self.config.depths:
            self._logger.info(f"Benchmarking depth {depth}")
            rows.append(self._measure_flat(depth))
            rows.append(self._measure(depth, "native", self._native_factory(depth)))
        return pd.DataFrame(rows)

    def _native_factory(self, depth: int) -> Callable[[], Iterable]:
        per_level = self.config.elements_per_level
        return lambda: native_recursive_sequence(depth, per_level)

    def _measure_flat(self, depth: int) -> Dict:
        per_level = self.config.elements_per_level
        if not self.config.use_memory_pool:
            row = self._measure(depth, "flat", lambda: recursive_sequence(depth, per_level))
            row["pool_bytes_leaked"] = None
            return row

        pool = pa.proxy_memory_pool(pa.default_memory_pool())
        allocator = MemoryPoolAllocator(pool)
        baseline = pool.bytes_allocated()
        row = self._measure(
            depth,
            "flat",
            lambda: pooled_recursive_sequence(allocator_arg, allocator, depth, per_level),
        )
        row["pool_bytes_leaked"] = pool.bytes_allocated() - baseline
        if row["pool_bytes_leaked"]:
            self._logger.warning(
                f"Frame storage not returned at depth {depth}: {row['pool_bytes_leaked']} bytes"
            )
        return row

    def _measure(self, depth: int, variant: str, factory: Callable[[], Iterable]) -> Dict:
        best = float("inf")
        elements = 0
        for _ in range(self.config.repeat):
            sequence = factory()
            start_time = time.perf_counter()
            elements = drain(sequence)
            best = min(best, time.perf_counter() - start_time)

        gc.collect()
        tracemalloc.start()
        try:
            drain(factory())
            _, peak_memory = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        self._logger.debug(f"{variant} depth={depth}: {elements} elements in {best:.6f}s")
        return {
            "depth": depth,
            "variant": variant,
            "elements": elements,
            "elapsed_seconds": best,
            "per_element_us": best / elements * 1e6 if elements else 0.0,
            "peak_memory_bytes": peak_memory,
        }

    @staticmethod
    def summarize(results: pd.DataFrame) -> pd.DataFrame:
        """
        Put both variants side by side per depth.

        Args:
            results: Output of ``run()``

        Returns:
            DataFrame indexed by depth with per-element cost of each variant
            and the native/flat ratio
        """
        summary = results.pivot(index="depth", columns="variant", values="per_element_us")
        summary["native_over_flat"] = summary["native"] / summary["flat"]
        return summary

    def write_results(self, results: pd.DataFrame, output_path: Path) -> Dict:
        """
        Write benchmark results to a Parquet file.

        Args:
            results: Output of ``run()``
            output_path: Destination file

        Returns:
            Dictionary with the file path, row count and size
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pandas(results, preserve_index=False)
        pq.write_table(table, str(output_path), compression=self.config.compression)
        stats = {
            "file_path": str(output_path),
            "num_rows": table.num_rows,
            "file_size_bytes": output_path.stat().st_size,
        }
        self._logger.info(f"Wrote {stats['num_rows']} benchmark rows to {output_path}")
        return stats
