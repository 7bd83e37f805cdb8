"""Main entry point for the delegation benchmark."""

import logging
import sys
import time
from typing import List, Optional

import pandas as pd

from .benchmark import DelegationBenchmark
from .config import get_benchmark_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging level.

    Args:
        verbose: Enable verbose logging
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.INFO)


def print_summary(results: pd.DataFrame, summary: pd.DataFrame, elapsed: float):
    """Print summary statistics.

    Args:
        results: Raw benchmark rows
        summary: Per-depth comparison of the variants
        elapsed: Total benchmark time in seconds
    """
    print("\n" + "=" * 80)
    print("DELEGATION BENCHMARK SUMMARY")
    print("=" * 80)

    print("\nPer-element cost (microseconds):")
    print(summary.to_string(float_format=lambda value: f"{value:.3f}"))

    flat = results[results["variant"] == "flat"]
    if "pool_bytes_leaked" in flat and flat["pool_bytes_leaked"].notna().any():
        print(f"\nFrame bytes not returned to the pool: {int(flat['pool_bytes_leaked'].sum())}")

    print(f"\nTotal time: {elapsed:.2f} seconds")
    print("\n" + "=" * 80)


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    argv = sys.argv[1:] if argv is None else argv
    setup_logging("--verbose" in argv or "-v" in argv)

    logger.info("Starting delegation benchmark")

    try:
        config = get_benchmark_config()
        logger.info(f"Depths: {config.depths}")
        logger.info(f"Elements per level: {config.elements_per_level}")
        logger.info(f"Repeat: {config.repeat}")

        start_time = time.time()
        benchmark = DelegationBenchmark(config, logger)
        results = benchmark.run()
        summary = benchmark.summarize(results)

        if config.output_file is not None:
            benchmark.write_results(results, config.output_file)

        print_summary(results, summary, time.time() - start_time)
        logger.info("Benchmark completed successfully!")
        return 0

    except KeyboardInterrupt:
        logger.warning("Benchmark interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Error during benchmark: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
