"""
Run configuration for the sisrs pipeline.
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

READ_FORMATS = ("fastq", "fasta")
DEFAULT_SITE_CALLER = "get_pruned_dict.py"
DEFAULT_MATRIX_BUILDER = "get_alignment.py"


@dataclass(frozen=True)
class SisrsConfig:
    """Resolved options for one pipeline run.

    Built once by `resolve_config` after taxon discovery and passed to every
    stage. Never mutated.
    """

    input_dir: str
    missing: int
    kmer: int = 21
    processors: int = 1
    read_format: str = "fastq"
    min_reads: int = 3
    threshold: float = 1.0
    skip_level: int = 0
    genome_size: Optional[int] = None
    reference: Optional[str] = None
    repeat_refine: bool = False
    site_caller: str = DEFAULT_SITE_CALLER
    matrix_builder: str = DEFAULT_MATRIX_BUILDER
    seed: Optional[int] = None

    @property
    def subsample(self) -> bool:
        return self.genome_size is not None

    def jobs_for(self, n_items: int) -> int:
        """Number of jobs to keep in flight for `n_items` independent items."""
        return max(1, min(self.processors, n_items))

    def threads_per_job(self, n_items: int) -> int:
        """Threads handed to each external tool so that jobs * threads <= processors."""
        return max(1, self.processors // self.jobs_for(n_items))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_missing(taxon_count: int) -> int:
    """Default missing-data allowance: all but two taxa may lack a call."""
    return max(0, taxon_count - 2)


def resolve_config(args, taxon_count: int) -> SisrsConfig:
    """Build the run configuration from parsed CLI arguments.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments from `sisrs.__main__.get_args`
    taxon_count : int
        Number of taxa found under the input directory

    Returns
    -------
    SisrsConfig
        Immutable configuration for this run

    Raises
    ------
    ValueError
        If an option is outside its valid range
    """

    missing = args.missing if args.missing is not None else default_missing(taxon_count)
    reference = os.path.abspath(args.reference) if args.reference else None

    config = SisrsConfig(
        input_dir=os.path.abspath(args.input_dir),
        missing=missing,
        kmer=args.kmer,
        processors=args.processors,
        read_format=args.read_format,
        min_reads=args.min_reads,
        threshold=args.threshold,
        skip_level=args.skip_level,
        genome_size=args.genome_size,
        reference=reference,
        repeat_refine=args.repeat_refine,
        site_caller=args.site_caller,
        matrix_builder=args.matrix_builder,
        seed=args.seed,
    )
    validate_config(config)
    return config


def validate_config(config: SisrsConfig) -> None:
    if config.kmer < 1:
        raise ValueError(f"k-mer size must be positive, got {config.kmer}")
    if config.processors < 1:
        raise ValueError(f"processor count must be positive, got {config.processors}")
    if config.read_format not in READ_FORMATS:
        raise ValueError(
            f"read format must be one of {', '.join(READ_FORMATS)}, got {config.read_format}"
        )
    if config.missing < 0:
        raise ValueError(f"missing-data allowance must be non-negative, got {config.missing}")
    if config.min_reads < 1:
        raise ValueError(f"minimum read count must be positive, got {config.min_reads}")
    if not 0 < config.threshold <= 1:
        raise ValueError(f"call threshold must be in (0, 1], got {config.threshold}")
    if not 0 <= config.skip_level <= 4:
        raise ValueError(f"skip level must be between 0 and 4, got {config.skip_level}")
    if config.genome_size is not None and config.genome_size < 1:
        raise ValueError(f"genome size must be positive, got {config.genome_size}")
    if config.reference is not None and not os.path.isfile(config.reference):
        raise ValueError(f"reference genome not found: {config.reference}")
