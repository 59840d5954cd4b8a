"""
Per-taxon read alignment against the composite contigs for sisrs pipeline,
with the optional repeat-refinement pass against taxon-specific contigs.
"""

import glob
import os
import shlex
import shutil
import subprocess
from typing import List

from .assembly import build_bowtie2_index
from .config import SisrsConfig
from .discovery import Assembly, ReadPair, Taxon
from .logger import get_logger
from .parallel import run_bounded, run_shell, run_shell_jobs

LOG = get_logger("alignment")


def align_command(pair: ReadPair, index: str, threads: int = 1, read_format: str = "fastq") -> str:
    """Shell pipeline aligning one read pair to `index` into a sorted BAM.

    Local mode with one seed mismatch; unmapped reads are dropped.
    """

    q = shlex.quote
    bowtie2 = ["bowtie2", "-p", str(threads), "-N", "1", "--local"]
    if read_format == "fasta":
        bowtie2.append("-f")
    bowtie2 += ["-x", q(index), "-1", q(pair.r1), "-2", q(pair.r2)]
    return (
        f"{' '.join(bowtie2)} 2> {q(pair.stderr_log)}"
        f" | samtools view -b -F 4 -"
        f" | samtools sort -o {q(pair.bam)} -"
        f" > {q(pair.stdout_log)}"
    )


def align_all(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    """Align every read pair of every taxon to the composite contig index."""
    pairs = [p for t in taxa for p in t.pairs]
    threads = config.threads_per_job(len(pairs))
    LOG.info("Aligning %d read pairs to %s", len(pairs), assembly.index)
    run_shell_jobs(
        [align_command(p, assembly.index, threads, config.read_format) for p in pairs],
        config.jobs_for(len(pairs)),
    )


def merge_alignments(bams: List[str], merged: str) -> str:
    """Merge a taxon's BAMs into `merged`.

    samtools merge needs at least two inputs, so a single BAM is hard linked
    (copied where the filesystem refuses links).
    """

    if not bams:
        raise ValueError("No alignments to merge")
    if os.path.lexists(merged):
        os.remove(merged)

    if len(bams) == 1:
        try:
            os.link(bams[0], merged)
        except OSError:
            shutil.copyfile(bams[0], merged)
        return merged

    subprocess.run(["samtools", "merge", "-f", merged, *bams], check=True)
    return merged


def private_contig_commands(taxon: Taxon, assembly: Assembly) -> List[str]:
    q = shlex.quote
    return [
        f"bcftools mpileup -f {q(assembly.contigs)} {q(taxon.merged_bam)} -Ou"
        f" | bcftools call -c -V indels -Oz -o {q(taxon.private_calls)}",
        f"bcftools index -f {q(taxon.private_calls)}",
        f"bcftools consensus -f {q(assembly.contigs)} -o {q(taxon.private_contigs)}"
        f" {q(taxon.private_calls)}",
    ]


def _intermediates(taxon: Taxon) -> List[str]:
    return [taxon.merged_bam, taxon.private_calls, taxon.private_calls + ".csi"]


def refine_taxon(taxon: Taxon, assembly: Assembly, threads: int = 1, read_format: str = "fastq") -> str:
    """Rebuild contigs from a taxon's own alignments and realign its reads to them.

    Parameters
    ----------
    taxon : Taxon
        Taxon with first-pass BAMs against the composite contigs
    assembly : Assembly
        Composite assembly
    threads : int
        Threads for bowtie2 and bowtie2-build
    read_format : str
        'fastq' or 'fasta'

    Returns
    -------
    str
        Prefix of the taxon's private bowtie2 index
    """

    LOG.info("Refining contigs for %s", taxon.name)
    merge_alignments(taxon.bams, taxon.merged_bam)
    for command in private_contig_commands(taxon, assembly):
        run_shell(command)
    build_bowtie2_index(taxon.private_contigs, taxon.private_index, threads)

    for pair in taxon.pairs:
        run_shell(align_command(pair, taxon.private_index, threads, read_format))

    for path in _intermediates(taxon):
        if os.path.exists(path):
            os.remove(path)
    return taxon.private_index


def refine_all(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    # .fai must exist before the workers start
    subprocess.run(["samtools", "faidx", assembly.contigs], check=True)
    threads = config.threads_per_job(len(taxa))
    run_bounded(
        taxa,
        lambda t: refine_taxon(t, assembly, threads, config.read_format),
        config.jobs_for(len(taxa)),
    )


def remove_private_contigs(taxon: Taxon) -> None:
    """Drop taxon contigs left by an earlier refined run."""
    stale = [taxon.private_contigs, taxon.private_contigs + ".fai"]
    stale += glob.glob(taxon.private_index + ".*.bt2")
    for path in stale:
        if os.path.exists(path):
            LOG.debug("Removing stale %s", path)
            os.remove(path)


def run_alignment_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    """First-pass alignment of all taxa, then refinement when enabled."""
    if not config.repeat_refine:
        for taxon in taxa:
            remove_private_contigs(taxon)
    align_all(config, taxa, assembly)
    if config.repeat_refine:
        refine_all(config, taxa, assembly)
