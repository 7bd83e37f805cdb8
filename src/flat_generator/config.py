"""Configuration management for the benchmark tooling."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _parse_depths(raw: str) -> List[int]:
    return [int(part) for part in raw.split(",") if part.strip()]


@dataclass
class BenchmarkConfig:
    """Delegation benchmark parameters."""

    depths: List[int] = field(default_factory=lambda: [1, 10, 100, 500])
    elements_per_level: int = 1
    repeat: int = 3
    output_file: Optional[Path] = None
    compression: str = "snappy"
    use_memory_pool: bool = True

    @classmethod
    def from_env(cls) -> "BenchmarkConfig":
        """Load benchmark configuration from environment variables.

        An empty BENCH_OUTPUT_FILE disables writing results to Parquet.
        """
        output_file = os.getenv("BENCH_OUTPUT_FILE", "")
        return cls(
            depths=_parse_depths(os.getenv("BENCH_DEPTHS", "1,10,100,500")),
            elements_per_level=int(os.getenv("BENCH_ELEMENTS_PER_LEVEL", "1")),
            repeat=int(os.getenv("BENCH_REPEAT", "3")),
            output_file=Path(output_file) if output_file else None,
            compression=os.getenv("BENCH_COMPRESSION", "snappy"),
            use_memory_pool=os.getenv("BENCH_USE_MEMORY_POOL", "true").lower() == "true",
        )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.depths:
            raise ValueError("depths must not be empty")
        if any(depth < 0 for depth in self.depths):
            raise ValueError("depths must not be negative")
        if self.elements_per_level <= 0:
            raise ValueError("elements_per_level must be positive")
        if self.repeat <= 0:
            raise ValueError("repeat must be positive")


def get_benchmark_config() -> BenchmarkConfig:
    """Get benchmark configuration."""
    return BenchmarkConfig.from_env()
