"""
Dependency checking for sisrs pipeline.
"""

import shutil
import sys
from typing import List

from .config import SisrsConfig

INSTALL_HINTS = {
    "velveth": "velvet: conda install -c bioconda velvet",
    "velvetg": "velvet: conda install -c bioconda velvet",
    "bowtie2": "bowtie2: conda install -c bioconda bowtie2",
    "bowtie2-build": "bowtie2: conda install -c bioconda bowtie2",
    "samtools": "samtools: conda install -c bioconda samtools",
    "bcftools": "bcftools: conda install -c bioconda bcftools",
}


def required_tools(config: SisrsConfig) -> List[str]:
    """External commands needed by the stages this run will execute."""
    tools = []
    if config.skip_level < 1:
        tools += ["velveth", "velvetg", "bowtie2-build"]
    if config.skip_level < 2:
        tools += ["bowtie2", "samtools"]
        if config.repeat_refine:
            tools += ["bcftools", "bowtie2-build"]
    if config.skip_level < 3:
        tools += ["samtools"]
        if config.reference:
            tools += ["bowtie2-build", "bowtie2"]
    if config.skip_level < 4:
        tools.append(config.site_caller)
    tools.append(config.matrix_builder)
    return list(dict.fromkeys(tools))


def check_dependencies(config: SisrsConfig):
    """Exit with status 1 if a command needed by this run is not on PATH."""
    missing = [dep for dep in required_tools(config) if not shutil.which(dep)]

    if missing:
        hints = sorted({INSTALL_HINTS.get(dep, f"{dep}: must be executable and on PATH") for dep in missing})
        sys.stderr.write(
            f"Missing required dependencies: {', '.join(missing)}\n"
            "Please install the following tools:\n"
            + "".join(f"- {hint}\n" for hint in hints)
        )
        sys.exit(1)
