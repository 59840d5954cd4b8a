"""
Taxon discovery and the artifact registry for sisrs.

Every per-taxon artifact path is derived here, from the R1 file name, so that
all stages agree on where a taxon's alignments, pileups and logs live.
"""

import os
import re
from dataclasses import dataclass
from typing import List, Tuple

import pandas as pd

from .logger import get_logger

LOG = get_logger("discovery")

ASSEMBLY_DIRNAME = "velvetoutput"
REGISTRY_COLUMNS = ["taxon", "directory", "r1", "r2", "base"]

# "R1" followed by _ . - or the extension, e.g. reads_R1.fastq, R1_001.fq, sampleR1.fq
_R1_TOKEN = re.compile(r"R1(?=[_.-])")


def _last_r1_token(name: str) -> re.Match:
    matches = list(_R1_TOKEN.finditer(name))
    if not matches:
        raise ValueError(f"No R1 token in read file name: {name}")
    return matches[-1]


def _substitute_r1(path: str, replacement: str) -> str:
    directory, name = os.path.split(path)
    m = _last_r1_token(name)
    return os.path.join(directory, name[: m.start()] + replacement + name[m.end():])


def is_r1_file(name: str) -> bool:
    return _R1_TOKEN.search(name) is not None


def mate_path(r1: str) -> str:
    """Path of the R2 mate of `r1`."""
    return _substitute_r1(r1, "R2")


def shuffled_path(r1: str) -> str:
    """Path of the interleaved stream built from `r1` and its mate."""
    return _substitute_r1(r1, "shuffled")


def derive_base_name(r1: str) -> str:
    """Artifact base name for a read pair.

    The R1 token (with one adjoining separator) and the file extension are
    removed: ``sampleA/reads_R1.fastq`` gives ``sampleA/reads``.

    Parameters
    ----------
    r1 : str
        Path to the R1 read file

    Returns
    -------
    str
        Path prefix shared by the pair's alignment, pileup and log files
    """

    directory, name = os.path.split(r1)
    stem = os.path.splitext(name)[0]
    m = _last_r1_token(stem + ".")
    before, after = stem[: m.start()], stem[m.end():]
    if before and before[-1] in "_.-":
        before = before[:-1]
    elif after and after[0] in "_.-":
        after = after[1:]
    base = before + after
    if not base:
        base = os.path.basename(directory) or "reads"
    return os.path.join(directory, base)


@dataclass(frozen=True)
class ReadPair:
    r1: str
    r2: str

    @property
    def base(self) -> str:
        return derive_base_name(self.r1)

    @property
    def shuffled(self) -> str:
        return shuffled_path(self.r1)

    @property
    def bam(self) -> str:
        return self.base + ".bam"

    @property
    def bam_index(self) -> str:
        return self.bam + ".bai"

    @property
    def pileup(self) -> str:
        return self.base + ".pileups"

    @property
    def stdout_log(self) -> str:
        return self.base + ".stdout.txt"

    @property
    def stderr_log(self) -> str:
        return self.base + ".stderr.txt"


@dataclass(frozen=True)
class Taxon:
    name: str
    directory: str
    pairs: Tuple[ReadPair, ...]

    def _path(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    def subsampled(self, read_format: str) -> str:
        return self._path(f"{self.name}_subsampled.{read_format}")

    @property
    def bams(self) -> List[str]:
        return [p.bam for p in self.pairs]

    @property
    def pileups(self) -> List[str]:
        return [p.pileup for p in self.pairs]

    @property
    def merged_bam(self) -> str:
        return self._path(f"{self.name}_merged.bam")

    @property
    def private_calls(self) -> str:
        return self._path(f"{self.name}_calls.vcf.gz")

    @property
    def private_contigs(self) -> str:
        return self._path("contigs.fa")

    @property
    def private_index(self) -> str:
        return self._path("contigs")


@dataclass(frozen=True)
class Assembly:
    """Paths of the composite assembly shared by all taxa."""

    root: str

    @property
    def directory(self) -> str:
        return os.path.join(self.root, ASSEMBLY_DIRNAME)

    @property
    def contigs(self) -> str:
        return os.path.join(self.directory, "contigs.fa")

    @property
    def index(self) -> str:
        return os.path.join(self.directory, "contigs")

    @property
    def reference_index(self) -> str:
        return os.path.join(self.directory, "reference")

    @property
    def reference_bam(self) -> str:
        return os.path.join(self.directory, "contigs_to_ref.bam")

    @property
    def reference_sam(self) -> str:
        return os.path.join(self.directory, "contigs_to_ref.sam")


def contigs_for(taxon: Taxon, assembly: Assembly) -> Tuple[str, str]:
    """(contigs fasta, bowtie2 index prefix) a taxon's reads are aligned to."""
    if os.path.exists(taxon.private_contigs):
        return taxon.private_contigs, taxon.private_index
    return assembly.contigs, assembly.index


def find_r1_files(input_dir: str, read_format: str) -> List[str]:
    """Find R1 read files of the given format below `input_dir`."""
    suffix = f".{read_format}"
    skip = os.path.join(os.path.abspath(input_dir), ASSEMBLY_DIRNAME)
    r1_files = []
    for root, dirs, files in os.walk(input_dir):
        if os.path.abspath(root) == skip:
            dirs[:] = []
            continue
        for file in files:
            if file.endswith(suffix) and is_r1_file(file[: -len(suffix)] + "."):
                r1_files.append(os.path.abspath(os.path.join(root, file)))
    return sorted(r1_files)


def discover_taxa(input_dir: str, read_format: str = "fastq") -> List[Taxon]:
    """Discover the taxa (directories of paired reads) below `input_dir`.

    Parameters
    ----------
    input_dir : str
        Root directory holding one sub-directory per taxon
    read_format : str
        Read file extension, 'fastq' or 'fasta'

    Returns
    -------
    List[Taxon]
        Taxa sorted by directory

    Raises
    ------
    FileNotFoundError
        If an R1 file has no R2 mate or no read files are found
    ValueError
        If two read pairs of a taxon map to the same output name
    """

    by_dir = {}
    for r1 in find_r1_files(input_dir, read_format):
        r2 = mate_path(r1)
        if not os.path.isfile(r2):
            raise FileNotFoundError(f"No R2 mate for {r1} (expected {r2})")
        by_dir.setdefault(os.path.dirname(r1), []).append(ReadPair(r1=r1, r2=r2))

    for pairs in by_dir.values():
        seen = {}
        for pair in pairs:
            if pair.base in seen:
                raise ValueError(
                    f"Read files {seen[pair.base]} and {pair.r1} share the output name {pair.base}"
                )
            seen[pair.base] = pair.r1

    if not by_dir:
        raise FileNotFoundError(
            f"No paired *R1*.{read_format} read files found under {input_dir}"
        )

    taxa = [
        Taxon(name=os.path.basename(d) or d, directory=d, pairs=tuple(pairs))
        for d, pairs in sorted(by_dir.items())
    ]
    LOG.info(
        "Found %d taxa with %d read pairs", len(taxa), sum(len(t.pairs) for t in taxa)
    )
    return taxa


def write_taxon_registry(taxa: List[Taxon], path: str) -> str:
    """Write one row per read pair (taxon, directory, mates, base name) as TSV."""
    rows = [
        {
            "taxon": t.name,
            "directory": t.directory,
            "r1": p.r1,
            "r2": p.r2,
            "base": p.base,
        }
        for t in taxa
        for p in t.pairs
    ]
    pd.DataFrame(rows, columns=REGISTRY_COLUMNS).to_csv(path, sep="\t", index=False)
    return path

