"""
Main pipeline orchestration for sisrs.

Stages run in a fixed order. The skip level resumes an interrupted run:
stage `i` (0-3) runs only when `skip_level <= i`; the matrix stage always runs.
"""

import os
from typing import Callable, List, Tuple

from .alignment import run_alignment_stage
from .assembly import run_composite_assembly
from .config import SisrsConfig
from .dependencies import check_dependencies
from .discovery import Assembly, Taxon, write_taxon_registry
from .logger import get_logger, log_stage, setup_logger
from .pileup import run_pileup_stage
from .reads import assembly_inputs, prepare_reads
from .sites import build_matrix, call_sites

LOG = get_logger("pipeline")

RUN_LOG = "sisrs_run.log"
REGISTRY = "taxa.tsv"


def _require(paths: List[str], stage: str) -> None:
    missing = [p for p in paths if not os.path.isfile(p)]
    if missing:
        raise FileNotFoundError(
            f"Cannot start {stage}: {len(missing)} input(s) missing, e.g. {missing[0]}. "
            "Rerun with a lower skip level."
        )


def _assembly_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    prepare_reads(config, taxa)
    streams = assembly_inputs(config, taxa)
    _require(streams, "composite assembly")
    run_composite_assembly(config, streams)


def _alignment_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    _require([assembly.contigs], "alignment")
    run_alignment_stage(config, taxa, assembly)


def _pileup_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    _require([assembly.contigs] + [b for t in taxa for b in t.bams], "pileup")
    run_pileup_stage(config, taxa, assembly)


def _site_calling_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    _require([p for t in taxa for p in t.pileups], "site calling")
    call_sites(config, taxa)


def _matrix_stage(config: SisrsConfig, taxa: List[Taxon], assembly: Assembly) -> None:
    build_matrix(config)


StageRunner = Callable[[SisrsConfig, List[Taxon], Assembly], None]

STAGES: List[Tuple[str, StageRunner]] = [
    ("composite assembly", _assembly_stage),
    ("alignment", _alignment_stage),
    ("pileup", _pileup_stage),
    ("site calling", _site_calling_stage),
    ("matrix", _matrix_stage),
]
MATRIX_STAGE = len(STAGES) - 1


def stage_enabled(index: int, skip_level: int) -> bool:
    return index == MATRIX_STAGE or skip_level <= index


def planned_stages(skip_level: int) -> List[str]:
    """Names of the stages a run with `skip_level` executes, in order."""
    return [name for i, (name, _) in enumerate(STAGES) if stage_enabled(i, skip_level)]


def run_sisrs_pipeline(config: SisrsConfig, taxa: List[Taxon]) -> List[str]:
    """
    Run the sisrs pipeline over the discovered taxa.

    Parameters
    ----------
    config : SisrsConfig
        Resolved run configuration
    taxa : List[Taxon]
        Taxa found under `config.input_dir`

    Returns
    -------
    List[str]
        Names of the stages that ran
    """
    setup_logger(os.path.join(config.input_dir, RUN_LOG))
    check_dependencies(config)

    LOG.info("sisrs run in %s", config.input_dir)
    for key, value in config.as_dict().items():
        LOG.info("  %s = %s", key, value)
    LOG.info("  taxa = %s", ", ".join(t.name for t in taxa))
    write_taxon_registry(taxa, os.path.join(config.input_dir, REGISTRY))

    assembly = Assembly(config.input_dir)
    executed = []
    for index, (name, runner) in enumerate(STAGES):
        if not stage_enabled(index, config.skip_level):
            LOG.info("Skipping stage %d: %s", index, name)
            continue
        log_stage(index, name)
        runner(config, taxa, assembly)
        executed.append(name)

    LOG.info("Pipeline completed! Stages run: %s", ", ".join(executed))
    return executed
