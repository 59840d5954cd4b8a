"""
Read shuffling and coverage subsampling for sisrs pipeline.

The assembler takes one interleaved stream per library, so each taxon's
R1/R2 files are either interleaved as-is or subsampled to a target coverage
into a single interleaved stream per taxon.
"""

import random
from functools import partial
from itertools import zip_longest
from typing import Iterator, List, Optional, Tuple

from Bio.SeqIO.FastaIO import SimpleFastaParser
from Bio.SeqIO.QualityIO import FastqGeneralIterator

from .config import SisrsConfig
from .discovery import ReadPair, Taxon
from .logger import get_logger
from .parallel import run_bounded

LOG = get_logger("reads")

COVERAGE = 10
READ_LENGTH = 100

_PARSERS = {"fastq": FastqGeneralIterator, "fasta": SimpleFastaParser}


def target_reads_per_taxon(genome_size: int, taxon_count: int) -> int:
    """Read pairs to keep per taxon for ~10x total coverage of the genome.

    Assumes reads of about 100 bp; both mates count towards coverage.

    Parameters
    ----------
    genome_size : int
        Expected genome size in bp
    taxon_count : int
        Number of taxa sharing the coverage

    Returns
    -------
    int
        floor(10 * genome_size / (100 * 2 * taxon_count))
    """

    if taxon_count < 1:
        raise ValueError("taxon_count must be positive")
    return (COVERAGE * genome_size) // (READ_LENGTH * 2 * taxon_count)


def _format_record(record: Tuple[str, ...], read_format: str) -> str:
    if read_format == "fastq":
        title, seq, qual = record
        return f"@{title}\n{seq}\n+\n{qual}\n"
    title, seq = record
    return f">{title}\n{seq}\n"


def iter_read_pairs(pair: ReadPair, read_format: str) -> Iterator[Tuple[tuple, tuple]]:
    """Yield (mate 1, mate 2) records of a read pair in file order."""
    parser = _PARSERS[read_format]
    with open(pair.r1, "r") as f1, open(pair.r2, "r") as f2:
        for rec1, rec2 in zip_longest(parser(f1), parser(f2)):
            if rec1 is None or rec2 is None:
                raise ValueError(
                    f"Mate files have different read counts: {pair.r1}, {pair.r2}"
                )
            yield rec1, rec2


def shuffle_pair(pair: ReadPair, read_format: str = "fastq") -> str:
    """Interleave a pair's mates into `pair.shuffled`.

    Returns
    -------
    str
        Path of the interleaved file
    """

    n = 0
    with open(pair.shuffled, "w") as out:
        for rec1, rec2 in iter_read_pairs(pair, read_format):
            out.write(_format_record(rec1, read_format))
            out.write(_format_record(rec2, read_format))
            n += 1
    LOG.debug("Interleaved %d read pairs into %s", n, pair.shuffled)
    return pair.shuffled


def count_read_pairs(taxon: Taxon, read_format: str) -> int:
    parser = _PARSERS[read_format]
    total = 0
    for pair in taxon.pairs:
        with open(pair.r1, "r") as f:
            total += sum(1 for _ in parser(f))
    return total


def subsample_taxon(
    taxon: Taxon, n_pairs: int, read_format: str = "fastq", seed: Optional[int] = None
) -> str:
    """Draw `n_pairs` read pairs uniformly without replacement from all of a
    taxon's libraries and write them as one interleaved stream.

    All pairs are kept when the taxon has fewer than `n_pairs`.

    Parameters
    ----------
    taxon : Taxon
        Taxon to subsample
    n_pairs : int
        Number of read pairs to keep
    read_format : str
        'fastq' or 'fasta'
    seed : int, optional
        Seed for the sampler; combined with the taxon name

    Returns
    -------
    str
        Path to the subsampled stream
    """

    total = count_read_pairs(taxon, read_format)
    rng = random.Random(None if seed is None else f"{seed}:{taxon.name}")
    keep_all = n_pairs >= total

    out_file = taxon.subsampled(read_format)
    i = 0
    kept = 0
    with open(out_file, "w") as out:
        for pair in taxon.pairs:
            for rec1, rec2 in iter_read_pairs(pair, read_format):
                # selection sampling: keep with probability (still needed / still unseen)
                if keep_all or rng.random() * (total - i) < n_pairs - kept:
                    out.write(_format_record(rec1, read_format))
                    out.write(_format_record(rec2, read_format))
                    kept += 1
                i += 1

    LOG.info("Subsampled %s: kept %d of %d read pairs", taxon.name, kept, total)
    return out_file


def shuffle_all(config: SisrsConfig, taxa: List[Taxon]) -> List[str]:
    pairs = [p for t in taxa for p in t.pairs]
    LOG.info("Interleaving %d read pairs", len(pairs))
    return run_bounded(
        pairs,
        partial(shuffle_pair, read_format=config.read_format),
        config.jobs_for(len(pairs)),
        processes=True,
    )


def subsample_all(config: SisrsConfig, taxa: List[Taxon]) -> List[str]:
    n_pairs = target_reads_per_taxon(config.genome_size, len(taxa))
    LOG.info(
        "Subsampling %d read pairs per taxon for a %d bp genome", n_pairs, config.genome_size
    )
    return run_bounded(
        taxa,
        partial(
            subsample_taxon,
            n_pairs=n_pairs,
            read_format=config.read_format,
            seed=config.seed,
        ),
        config.jobs_for(len(taxa)),
        processes=True,
    )


def prepare_reads(config: SisrsConfig, taxa: List[Taxon]) -> List[str]:
    """Subsample when a genome size is set, otherwise interleave every pair."""
    if config.subsample:
        return subsample_all(config, taxa)
    return shuffle_all(config, taxa)


def assembly_inputs(config: SisrsConfig, taxa: List[Taxon]) -> List[str]:
    """Interleaved streams the assembler reads for this configuration."""
    if config.subsample:
        return [t.subsampled(config.read_format) for t in taxa]
    return [p.shuffled for t in taxa for p in t.pairs]
