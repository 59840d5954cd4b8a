import argparse
import subprocess
import sys

from .__init__ import __version__
from .config import DEFAULT_MATRIX_BUILDER, DEFAULT_SITE_CALLER, READ_FORMATS, resolve_config
from .discovery import discover_taxa
from .pipeline import run_sisrs_pipeline


def get_args():
    description = (
        "sisrs: identify variable sites across taxa from paired-end short"
        + " reads using a composite assembly in place of a reference genome"
    )
    main_parser = argparse.ArgumentParser(
        description=description,
        prog="sisrs",
    )

    # i/o args
    io_opts = main_parser.add_argument_group("Input and output")
    io_opts.add_argument(
        "-a",
        "--input-dir",
        dest="input_dir",
        help="directory containing one sub-directory of paired reads per taxon (default: .)",
        type=str,
        default=".",
    )
    io_opts.add_argument(
        "-f",
        "--format",
        dest="read_format",
        help="read file format (default: fastq)",
        choices=READ_FORMATS,
        default="fastq",
    )
    io_opts.add_argument(
        "-r",
        "--reference",
        dest="reference",
        help=(
            "reference genome FASTA; guides the assembly and positions the final"
            + " matrix in reference coordinates"
        ),
        type=str,
        default=None,
    )

    # assembly args
    asm_opts = main_parser.add_argument_group("Assembly arguments")
    asm_opts.add_argument(
        "-g",
        "--genome-size",
        dest="genome_size",
        help=(
            "approximate genome size in bp; subsample reads to ~10x total coverage"
            + " before assembly (default: no subsampling)"
        ),
        type=int,
        default=None,
    )
    asm_opts.add_argument(
        "-k",
        "--kmer",
        dest="kmer",
        help="k-mer size for the assembler (default: 21)",
        type=int,
        default=21,
    )
    asm_opts.add_argument(
        "-q",
        "--refine",
        dest="repeat_refine",
        help="realign each taxon against contigs rebuilt from its own reads",
        action="store_true",
    )
    asm_opts.add_argument(
        "--seed",
        dest="seed",
        help="random seed for subsampling",
        type=int,
        default=None,
    )

    # calling args
    call_opts = main_parser.add_argument_group("Site calling arguments")
    call_opts.add_argument(
        "-n",
        "--min-reads",
        dest="min_reads",
        help="minimum number of reads to call a site (default: 3)",
        type=int,
        default=3,
    )
    call_opts.add_argument(
        "-t",
        "--threshold",
        dest="threshold",
        help="fraction of reads that must agree to call a base (default: 1.0)",
        type=float,
        default=1.0,
    )
    call_opts.add_argument(
        "-m",
        "--missing",
        dest="missing",
        help="number of taxa allowed to lack a call at a site (default: taxa - 2)",
        type=int,
        default=None,
    )
    call_opts.add_argument(
        "--site-caller",
        dest="site_caller",
        help=f"site-calling command run once per taxon (default: {DEFAULT_SITE_CALLER})",
        type=str,
        default=DEFAULT_SITE_CALLER,
    )
    call_opts.add_argument(
        "--matrix-builder",
        dest="matrix_builder",
        help=f"alignment matrix command (default: {DEFAULT_MATRIX_BUILDER})",
        type=str,
        default=DEFAULT_MATRIX_BUILDER,
    )

    # run args
    run_opts = main_parser.add_argument_group("Run control")
    run_opts.add_argument(
        "-p",
        "--processors",
        dest="processors",
        help="number of processors (default: 1)",
        type=int,
        default=1,
    )
    run_opts.add_argument(
        "-s",
        "--skip",
        dest="skip_level",
        help=(
            "resume from a stage: 0 run all, 1 skip assembly, 2 also skip alignment,"
            + " 3 also skip pileups, 4 only build the matrix (default: 0)"
        ),
        type=int,
        choices=range(5),
        default=0,
    )

    # main parser args
    main_parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )

    args = main_parser.parse_args()

    return args


def main():
    args = get_args()

    try:
        taxa = discover_taxa(args.input_dir, args.read_format)
        config = resolve_config(args, len(taxa))
    except (FileNotFoundError, ValueError) as e:
        sys.stderr.write(f"sisrs: {e}\n")
        sys.exit(1)

    # Run the pipeline
    try:
        run_sisrs_pipeline(config, taxa)
    except subprocess.CalledProcessError as e:
        sys.stderr.write(f"sisrs: external command failed with exit code {e.returncode}: {e.cmd}\n")
        sys.exit(1)
    except (OSError, ValueError) as e:
        sys.stderr.write(f"sisrs: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
