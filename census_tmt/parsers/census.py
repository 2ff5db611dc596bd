"""Parser for Census quantification files.

A Census file is line-oriented and tab-separated. The first character of each
line identifies the record type:

    H   header line, one of the headers lists the peptide columns, including
        a raw and a normalized intensity column per TMT channel, e.g.
        m/z_126.127726_int and norm_m/z_126.127726_int
    P   protein record, followed by the S records of its peptides
    S   peptide record

Parsing is strict: the first malformed record aborts the parse with a
CensusParseError that reports the 1-based line number of the offending line.
"""

from __future__ import annotations

import enum
import logging
from typing import List, Optional

from ..dataset import Dataset
from ..protein import Peptide, Protein

logger = logging.getLogger(__name__)

DELIMITER = "\t"

HEADER_TAG = "H"
PROTEIN_TAG = "P"
PEPTIDE_TAG = "S"

# each channel has a raw and a normalized intensity column with this marker
CHANNEL_HEADER_MARKER = "m/z_"
CHANNEL_HEADER_INDICATOR = "m/z"
# label in the peptide column header that has no counterpart in the S records
PEPTIDE_HEADER_LABEL = "sline"

UNIQUE_FLAG = "U"

# optional peptide columns, matched case-insensitively
SCAN_COLUMN = "scannum"
PURITY_COLUMN = "purity"


class ParseErrorKind(enum.Enum):
    INVALID_LEADING_CHARACTER = "invalid leading character"
    NUMERIC_CONVERSION = "numeric conversion failure"
    UNEXPECTED_END_OF_INPUT = "unexpected end of input"
    MALFORMED_RECORD = "malformed record"


class CensusParseError(ValueError):
    kind: ParseErrorKind
    line: int

    def __init__(self, kind: ParseErrorKind, line: int, detail: str = ""):
        self.kind = kind
        self.line = line
        message = f"Error parsing Census file at line {line}: {kind.value}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class InvalidLeadingCharacterError(CensusParseError):
    def __init__(self, char: str, line: int):
        self.char = char
        super().__init__(ParseErrorKind.INVALID_LEADING_CHARACTER, line, repr(char))


class NumericConversionError(CensusParseError):
    def __init__(self, token: str, line: int):
        self.token = token
        super().__init__(
            ParseErrorKind.NUMERIC_CONVERSION, line, f"could not convert {token!r}"
        )


class UnexpectedEndOfInputError(CensusParseError):
    def __init__(self, line: int, detail: str = ""):
        super().__init__(ParseErrorKind.UNEXPECTED_END_OF_INPUT, line, detail)


class MalformedRecordError(CensusParseError):
    def __init__(self, line: int, detail: str = ""):
        super().__init__(ParseErrorKind.MALFORMED_RECORD, line, detail)


def parse(text: str) -> Dataset:
    return CensusParser(text).parse()


def split_lines(text: str) -> List[str]:
    """Splits text into lines on \\n, removing a trailing \\r from each line.

    A newline at the very end of the text does not start an extra line.
    """
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def to_uint(token: str, line: int) -> int:
    if not (token.isascii() and token.isdigit()):
        raise NumericConversionError(token, line)
    return int(token)


def to_float(token: str, line: int) -> float:
    if token != token.strip() or "_" in token:
        raise NumericConversionError(token, line)
    try:
        return float(token)
    except ValueError:
        raise NumericConversionError(token, line)


class _Record:
    """Sequential access to the tab-separated fields of a single record."""

    def __init__(self, line: str, line_number: int, tag: str):
        self.fields = line.split(DELIMITER)
        self.line_number = line_number
        self.pos = 1
        if self.fields[0] != tag:
            raise MalformedRecordError(
                line_number,
                f"expected record tag {tag!r}, found {self.fields[0]!r}",
            )

    def next_field(self) -> str:
        if self.pos >= len(self.fields):
            raise UnexpectedEndOfInputError(
                self.line_number, f"record has only {len(self.fields)} fields"
            )
        field = self.fields[self.pos]
        self.pos += 1
        return field

    def next_uint(self) -> int:
        return to_uint(self.next_field(), self.line_number)

    def next_float(self) -> float:
        return to_float(self.next_field(), self.line_number)

    def last_field(self) -> str:
        """Returns the last field, which must come after the current position."""
        if self.pos >= len(self.fields):
            raise UnexpectedEndOfInputError(
                self.line_number, f"record has only {len(self.fields)} fields"
            )
        self.pos = len(self.fields)
        return self.fields[-1]

    def field_at(self, idx: int) -> str:
        if idx >= len(self.fields):
            raise UnexpectedEndOfInputError(
                self.line_number, f"record has only {len(self.fields)} fields"
            )
        return self.fields[idx]


class CensusParser:
    """Line-by-line parser turning the content of a Census file into a Dataset.

    All strings in the resulting Dataset are independent copies, so the
    Dataset does not depend on the input text.
    """

    lines: List[str]
    idx: int
    channels: int
    scan_col: int
    purity_col: int

    def __init__(self, text: str):
        self.lines = split_lines(text)
        self.idx = 0
        self.channels = 0
        self.scan_col = -1
        self.purity_col = -1
        self._seen_proteins = False

    @property
    def line_number(self) -> int:
        """1-based number of the next line to be consumed."""
        return self.idx + 1

    def _peek(self) -> Optional[str]:
        if self.idx < len(self.lines):
            return self.lines[self.idx]
        return None

    def _next(self) -> str:
        line = self.lines[self.idx]
        self.idx += 1
        return line

    def parse(self) -> Dataset:
        proteins = []
        while self._peek() is not None:
            line = self._peek()
            if len(line) == 0:
                raise UnexpectedEndOfInputError(self.line_number, "empty line")

            tag = line[0]
            if tag == HEADER_TAG:
                self._parse_header()
            elif tag == PROTEIN_TAG:
                proteins.append(self._parse_protein())
            else:
                raise InvalidLeadingCharacterError(tag, self.line_number)

        if self.channels == 0 and len(proteins) > 0:
            logger.warning(
                "No header with TMT channel columns found, peptides will not have intensities"
            )
        logger.debug(
            f"Parsed {len(proteins)} proteins with {self.channels} TMT channels"
        )
        return Dataset(proteins=proteins, channels=self.channels)

    def _parse_header(self) -> None:
        line_number = self.line_number
        line = self._next()
        if CHANNEL_HEADER_INDICATOR not in line:
            return

        channels = line.count(CHANNEL_HEADER_MARKER) // 2
        if self._seen_proteins and channels != self.channels:
            raise MalformedRecordError(
                line_number,
                f"number of TMT channels changed from {self.channels} to {channels} after protein records",
            )
        self.channels = channels
        self._set_peptide_columns(line.split(DELIMITER))

    def _set_peptide_columns(self, headers: List[str]) -> None:
        """Locates optional peptide columns such that the returned index
        refers to the fields of an S record."""
        headers = list(map(str.lower, headers))
        if len(headers) > 1 and headers[1] == PEPTIDE_HEADER_LABEL:
            del headers[1]

        def get_header_col(name: str) -> int:
            return headers.index(name) if name in headers else -1

        self.scan_col = get_header_col(SCAN_COLUMN)
        self.purity_col = get_header_col(PURITY_COLUMN)

    def _parse_protein(self) -> Protein:
        record = _Record(self._next(), self.idx, PROTEIN_TAG)

        accession = record.next_field()
        spectral_count = record.next_uint()
        sequence_count = record.next_uint()
        sequence_coverage = to_float(record.next_field().rstrip("%"), record.line_number)
        molecular_weight = record.next_uint()
        description = record.last_field()

        peptides = []
        while self._peek() is not None and self._peek().startswith(PEPTIDE_TAG):
            peptides.append(self._parse_peptide())

        self._seen_proteins = True
        return Protein(
            accession=accession,
            description=description,
            spectral_count=spectral_count,
            sequence_count=sequence_count,
            sequence_coverage=sequence_coverage,
            molecular_weight=molecular_weight,
            peptides=peptides,
            channels=self.channels,
        )

    def _parse_peptide(self) -> Peptide:
        record = _Record(self._next(), self.idx, PEPTIDE_TAG)

        flag = record.next_field()
        if len(flag) > 1:
            raise MalformedRecordError(
                record.line_number, f"unique flag should be a single character, found {flag!r}"
            )
        sequence = record.next_field()

        values = []
        for _ in range(self.channels):
            values.append(record.next_uint())
            record.next_field()  # normalized intensity, not used

        scan, purity = None, None
        if self.scan_col >= 0:
            token = record.field_at(self.scan_col)
            if len(token) > 0:
                scan = to_uint(token, record.line_number)
        if self.purity_col >= 0:
            token = record.field_at(self.purity_col)
            if len(token) > 0:
                purity = to_float(token, record.line_number)

        return Peptide(
            sequence=sequence,
            values=values,
            unique=flag == UNIQUE_FLAG,
            purity=purity,
            scan=scan,
        )
