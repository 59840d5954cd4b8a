"""
Bounded parallel dispatch of per-taxon work for sisrs.
"""

import shlex
import shutil
import subprocess
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, TypeVar

from .logger import get_logger

LOG = get_logger("parallel")

T = TypeVar("T")
R = TypeVar("R")

GNU_PARALLEL = "parallel"


def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], R],
    max_parallel: int,
    processes: bool = False,
) -> List[R]:
    """Run `worker` once per item with at most `max_parallel` calls in flight.

    Returns after every item has finished. Items run in no particular order;
    results come back in item order. If any call raised, the first failure
    (in item order) is re-raised once all calls are done.

    Parameters
    ----------
    items : Sequence
        Independent work items
    worker : Callable
        Function applied to each item; must be picklable when `processes` is set
    max_parallel : int
        Pool size
    processes : bool
        Use worker processes (CPU-bound Python work) instead of threads
        (work that waits on external tools)

    Returns
    -------
    list
        `worker(item)` for each item
    """

    if max_parallel < 1:
        raise ValueError(f"max_parallel must be positive, got {max_parallel}")
    items = list(items)
    if not items:
        return []

    pool_cls = ProcessPoolExecutor if processes else ThreadPoolExecutor
    results: List[Optional[R]] = [None] * len(items)
    errors = {}

    with pool_cls(max_workers=min(max_parallel, len(items))) as ex:
        futs = {ex.submit(worker, item): i for i, item in enumerate(items)}
        for fut in as_completed(futs):
            i = futs[fut]
            try:
                results[i] = fut.result()
            except Exception as e:
                LOG.error("Job %d/%d failed: %s", i + 1, len(items), e)
                errors[i] = e

    if errors:
        raise errors[min(errors)]
    return results


def run_shell(
    command: str, stdout: Optional[str] = None, stderr: Optional[str] = None
) -> subprocess.CompletedProcess:
    """Run one shell command line under bash with pipefail.

    Parameters
    ----------
    command : str
        Command line, pipes allowed
    stdout, stderr : str, optional
        Files capturing the command's output streams

    Raises
    ------
    subprocess.CalledProcessError
        If any command of the pipeline exits non-zero
    """

    LOG.debug("Running: %s", command)
    out = open(stdout, "w") if stdout else None
    err = open(stderr, "w") if stderr else None
    try:
        return subprocess.run(
            ["bash", "-o", "pipefail", "-c", command],
            check=True,
            stdout=out,
            stderr=err,
            text=True,
        )
    except subprocess.CalledProcessError:
        LOG.error("Command failed: %s", command)
        raise
    finally:
        for fh in (out, err):
            if fh is not None:
                fh.close()


def has_gnu_parallel() -> bool:
    return shutil.which(GNU_PARALLEL) is not None


def run_shell_jobs(commands: Sequence[str], max_parallel: int) -> None:
    """Run independent shell command lines, at most `max_parallel` at a time.

    GNU parallel is used when it is on PATH; otherwise the commands go
    through `run_bounded` on a thread pool. Both stop the stage on the first
    failing command.
    """

    commands = list(commands)
    if max_parallel < 1:
        raise ValueError(f"max_parallel must be positive, got {max_parallel}")
    if not commands:
        return

    if has_gnu_parallel():
        LOG.debug("Dispatching %d jobs to GNU parallel (-j %d)", len(commands), max_parallel)
        subprocess.run(
            [GNU_PARALLEL, "-j", str(max_parallel), "--halt", "now,fail=1"],
            input="".join(f"bash -o pipefail -c {shlex.quote(c)}\n" for c in commands),
            check=True,
            text=True,
        )
    else:
        run_bounded(commands, run_shell, max_parallel)
