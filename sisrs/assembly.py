"""
Composite assembly of pooled reads from all taxa for sisrs pipeline.
"""

import os
import subprocess
from typing import List, Optional

from .config import SisrsConfig
from .discovery import Assembly
from .logger import get_logger

LOG = get_logger("assembly")


def velveth_command(
    assembly: Assembly,
    streams: List[str],
    kmer: int,
    read_format: str,
    reference: Optional[str] = None,
) -> List[str]:
    cmd = [
        "velveth",
        assembly.directory,
        str(kmer),
        "-create_binary",
        f"-{read_format}",
        "-shortPaired",
        "-interleaved",
        *streams,
    ]
    if reference:
        cmd += ["-fasta", "-reference", reference]
    return cmd


def velvetg_command(assembly: Assembly) -> List[str]:
    return [
        "velvetg",
        assembly.directory,
        "-exp_cov",
        "auto",
        "-cov_cutoff",
        "auto",
    ]


def build_bowtie2_index(fasta: str, prefix: str, threads: int = 1) -> str:
    """Build a bowtie2 index for `fasta` at `prefix`."""
    cmd = ["bowtie2-build", "--threads", str(threads), fasta, prefix]
    LOG.debug("Running: %s", " ".join(cmd))
    subprocess.run(cmd, check=True, capture_output=True, text=True)
    return prefix


def run_composite_assembly(config: SisrsConfig, streams: List[str]) -> Assembly:
    """Assemble every taxon's interleaved reads into one contig set and index it.

    Parameters
    ----------
    config : SisrsConfig
        Run configuration (k-mer size, read format, processors, reference)
    streams : List[str]
        Interleaved read streams of all taxa

    Returns
    -------
    Assembly
        Paths of the composite contigs and their bowtie2 index
    """

    assembly = Assembly(config.input_dir)
    os.makedirs(assembly.directory, exist_ok=True)

    env = dict(os.environ, OMP_NUM_THREADS=str(config.processors))

    LOG.info(
        "Building composite assembly from %d read streams (k=%d)%s",
        len(streams),
        config.kmer,
        " guided by reference" if config.reference else "",
    )
    subprocess.run(
        velveth_command(
            assembly, streams, config.kmer, config.read_format, config.reference
        ),
        check=True,
        env=env,
    )
    subprocess.run(velvetg_command(assembly), check=True, env=env)

    if not os.path.isfile(assembly.contigs):
        raise FileNotFoundError(f"Assembler produced no contigs: {assembly.contigs}")

    LOG.info("Indexing composite contigs %s", assembly.contigs)
    build_bowtie2_index(assembly.contigs, assembly.index, config.processors)
    return assembly
