"""
Site calling and alignment matrix construction for sisrs pipeline.

Both steps are external scripts; this module only builds and dispatches
their command lines.
"""

import shlex
import subprocess
from typing import List

from .config import SisrsConfig
from .discovery import Taxon
from .logger import get_logger
from .parallel import run_shell_jobs

LOG = get_logger("sites")

NO_REFERENCE = "X"


def site_caller_command(config: SisrsConfig, taxon: Taxon) -> str:
    q = shlex.quote
    return " ".join(
        [
            q(config.site_caller),
            q(taxon.directory),
            str(config.min_reads),
            str(config.threshold),
        ]
    )


def call_sites(config: SisrsConfig, taxa: List[Taxon]) -> None:
    """Reduce each taxon's pileups to a dictionary of confidently called sites."""
    LOG.info(
        "Calling sites for %d taxa (min reads %d, threshold %s)",
        len(taxa),
        config.min_reads,
        config.threshold,
    )
    run_shell_jobs(
        [site_caller_command(config, t) for t in taxa], config.jobs_for(len(taxa))
    )


def matrix_builder_command(config: SisrsConfig) -> List[str]:
    return [
        config.matrix_builder,
        str(config.missing),
        config.reference or NO_REFERENCE,
        config.input_dir,
    ]


def build_matrix(config: SisrsConfig) -> None:
    """Combine all site dictionaries into the variable-site alignment matrix."""
    LOG.info("Building alignment matrix allowing %d missing taxa per site", config.missing)
    subprocess.run(matrix_builder_command(config), check=True, cwd=config.input_dir)
