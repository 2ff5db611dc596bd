import sys
import os
import logging
import argparse
from timeit import default_timer as timer
from typing import List

from . import __version__, __copyright__
from . import filter_io
from . import report
from .filter import Filter
from .parsers.census import CensusParser

logger = logging.getLogger(__name__)

GREETER = f"census-tmt version {__version__}\n{__copyright__}"

OUTPUT_FILE_DEFAULT = "census_filtered.txt"


def main(argv: List[str]) -> None:
    """Main function."""
    logger.info(GREETER)
    logger.info(
        f'Issued command: {os.path.basename(__file__)} {" ".join(map(str, argv))}'
    )

    args = parse_args(argv)
    try:
        run_census_tmt(args)
    except ValueError as e:
        # parse errors in the Census file or the filter definition
        logger.error(str(e))
        sys.exit(1)


class ArgumentParserWithLogger(argparse.ArgumentParser):
    def error(self, message):
        logger.error(f"Error parsing input arguments: {message}")
        super().error(message)


def parse_args(argv):
    apars = ArgumentParserWithLogger(
        description=GREETER, formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    apars.add_argument(
        "--census_file",
        default=None,
        metavar="C",
        required=True,
        help="""Census quantification file with TMT intensities.""",
    )

    apars.add_argument(
        "--filter",
        default=None,
        metavar="F",
        help="""Filter definition. Files with a .json or .toml extension are
                read as filter documents, any other file as filter rule text.
                If not specified, all proteins and peptides are retained.""",
    )

    apars.add_argument(
        "--output",
        default=OUTPUT_FILE_DEFAULT,
        metavar="O",
        help="""Tab-separated output file with summed TMT intensities per
                protein.""",
    )

    apars.add_argument(
        "--normalize_to",
        default=None,
        metavar="CH",
        type=int,
        nargs="+",
        help="""1-based channel(s), e.g. the control channels. The summed
                intensity of each channel is divided by the mean summed
                intensity of these channels.""",
    )

    apars.add_argument(
        "--swap_channels",
        default=None,
        metavar=("A", "B"),
        type=int,
        nargs=2,
        help="""Swap two 0-based channels in every peptide before writing
                the output, e.g. to correct a labeling mistake.""",
    )

    # ------------------------------------------------
    args = apars.parse_args(argv)

    return args


def run_census_tmt(args: argparse.Namespace) -> None:
    start = timer()

    rule_filter = Filter()
    if args.filter:
        rule_filter = filter_io.load_filter(args.filter)

    logger.info(f"Parsing Census file: {args.census_file}")
    with open(args.census_file, "r", encoding="utf-8-sig") as f:
        dataset = CensusParser(f.read()).parse()
    logger.info(
        f"Read {len(dataset)} proteins with {dataset.channels} TMT channels"
    )

    if not rule_filter.is_empty():
        dataset = rule_filter.apply(dataset)
    logger.info(f"#Proteins after filtering: {len(dataset)}")

    if args.swap_channels:
        a, b = args.swap_channels
        if not (0 <= a < dataset.channels and 0 <= b < dataset.channels):
            raise ValueError(
                f"Cannot swap channels {a} and {b}, dataset has {dataset.channels} channels"
            )
        logger.info(f"Swapping channels {a} and {b}")
        for protein in dataset:
            for peptide in protein.peptides:
                peptide.swap_channels(a, b)

    df = report.protein_table(dataset, normalize_to=args.normalize_to)
    report.write_protein_table(df, args.output)

    end = timer()
    logger.info(f"census-tmt completed in {'%.1f' % (end - start)} seconds")


def run() -> None:
    main(sys.argv[1:])


if __name__ == "__main__":
    main(sys.argv[1:])
