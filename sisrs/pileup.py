"""
BAM indexing, per-taxon pileups and optional reference mapping for sisrs
pipeline.
"""

import shlex
import subprocess
from typing import List

from .assembly import build_bowtie2_index
from .config import SisrsConfig
from .discovery import Assembly, ReadPair, Taxon, contigs_for
from .logger import get_logger
from .parallel import run_bounded, run_shell, run_shell_jobs

LOG = get_logger("pileup")


def pileup_command(pair: ReadPair, contigs: str) -> str:
    """Index one BAM and pile it up against `contigs` with no base filtering."""
    q = shlex.quote
    return (
        f"samtools index {q(pair.bam)} {q(pair.bam_index)}"
        f" && samtools mpileup -B -Q 0 -f {q(contigs)} {q(pair.bam)} -o {q(pair.pileup)}"
    )


def _faidx(fasta: str) -> None:
    subprocess.run(["samtools", "faidx", fasta], check=True)


def pileup_all(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    commands = []
    contig_sets = set()
    for taxon in taxa:
        contigs, _ = contigs_for(taxon, assembly)
        contig_sets.add(contigs)
        commands += [pileup_command(p, contigs) for p in taxon.pairs]

    # one .fai per contig set, written before mpileup reads it concurrently
    run_bounded(sorted(contig_sets), _faidx, config.jobs_for(len(contig_sets)))

    LOG.info("Generating %d pileups", len(commands))
    run_shell_jobs(commands, config.jobs_for(len(commands)))


def map_contigs_to_reference(config: SisrsConfig, assembly: Assembly) -> str:
    """Align the composite contigs to the reference genome as single-end reads.

    Returns
    -------
    str
        Path to the contig-to-reference SAM file
    """

    q = shlex.quote
    LOG.info("Mapping composite contigs to reference %s", config.reference)
    build_bowtie2_index(config.reference, assembly.reference_index, config.processors)
    run_shell(
        f"bowtie2 -p {config.processors} -f -x {q(assembly.reference_index)}"
        f" -U {q(assembly.contigs)}"
        f" | samtools view -b -F 4 -"
        f" | samtools sort -o {q(assembly.reference_bam)} -"
    )
    subprocess.run(["samtools", "index", assembly.reference_bam], check=True)
    subprocess.run(
        ["samtools", "view", "-o", assembly.reference_sam, assembly.reference_bam],
        check=True,
    )
    return assembly.reference_sam


def run_pileup_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    pileup_all(config, taxa, assembly)
    if config.reference:
        map_contigs_to_reference(config, assembly)
