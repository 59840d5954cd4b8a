import os
import sys
import pytest
import tempfile
import shutil

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sisrs.config import SisrsConfig

TAXON_NAMES = ["taxonA", "taxonB", "taxonC", "taxonD"]


def _write_reads(path, n, prefix="read", read_format="fastq"):
    with open(path, "w") as f:
        for i in range(n):
            if read_format == "fastq":
                f.write(f"@{prefix}{i}\nACGTACGTAC\n+\nIIIIIIIIII\n")
            else:
                f.write(f">{prefix}{i}\nACGTACGTAC\n")
    return path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def write_reads():
    """Writer for small synthetic read files."""
    return _write_reads


@pytest.fixture
def taxa_dir(temp_dir):
    """Input directory with four taxa, each holding one paired FASTQ library."""
    for name in TAXON_NAMES:
        taxon_dir = os.path.join(temp_dir, name)
        os.makedirs(taxon_dir)
        _write_reads(os.path.join(taxon_dir, "reads_R1.fastq"), 5, f"{name}_")
        _write_reads(os.path.join(taxon_dir, "reads_R2.fastq"), 5, f"{name}_")
    return temp_dir


@pytest.fixture
def make_config(temp_dir):
    """Factory for run configurations rooted at the temporary directory."""

    def _make(**kwargs):
        kwargs.setdefault("input_dir", temp_dir)
        kwargs.setdefault("missing", 2)
        return SisrsConfig(**kwargs)

    return _make


@pytest.fixture(autouse=True)
def _reset_sisrs_logger():
    """Restore the 'sisrs' logger after each test so handlers bound to one
    test's captured streams do not leak into the next."""
    import logging

    logger = logging.getLogger("sisrs")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for h in list(logger.handlers):
        if h not in saved[0]:
            logger.removeHandler(h)
            h.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]
