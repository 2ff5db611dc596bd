import sys
import logging.handlers
import time
from importlib.metadata import version, PackageNotFoundError

# get version number of census-tmt, the distribution name differs from the package
try:
    __version__ = version("census-tmt")
except PackageNotFoundError:
    __version__ = "0.0.0"

__copyright__ = """Parsing and filtering of multiplexed isobaric (TMT) quantification
data reported by the Census algorithm."""

CONSOLE_LOG_LEVEL = logging.INFO
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if len(logger.handlers) == 0:
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    formatter.converter = time.gmtime
    # add console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(CONSOLE_LOG_LEVEL)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # add error handler
    error_handler = logging.StreamHandler()
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)
else:
    logger.info("Logger already initialized. Resuming normal operation.")

from .protein import Peptide, Protein
from .dataset import Dataset
from .filter import (
    Filter,
    ProteinFilter,
    PeptideFilter,
    SpectralCounts,
    SequenceCounts,
    ExcludeReverse,
    SequenceMatch,
    SequenceExclude,
    TotalIntensity,
    TotalIntensityChannels,
    ChannelIntensity,
    ChannelCV,
    Tryptic,
    Unique,
)
from .filter_rules import parse_rules, format_rules, RuleParseError
from .parsers.census import CensusParser, CensusParseError, ParseErrorKind


def read_census(text: str) -> Dataset:
    """Parse a string containing a complete Census file into a Dataset."""
    return CensusParser(text).parse()
