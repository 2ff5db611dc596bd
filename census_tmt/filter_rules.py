"""Parser for the filter rule text format.

The text consists of protein and peptide blocks, each followed by any
number of rules:

    protein:
        spectral_counts = 10
        sequence_counts = 2
        exclude_reverse
    peptide:
        total_intensity = 5000
        total_intensity_channels = 1, 2 3000
        channel_intensity = 1 1000
        channel_cv = 1, 2, 6, 7 0.05
        sequence_match = K
        sequence_exclude = C
        tryptic
        unique

Tokens are separated by whitespace, there is no quoting, so patterns cannot
contain whitespace. Parsing stops at the first error.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, List

from .filter import (
    Filter,
    FilterSerializationError,
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

logger = logging.getLogger(__name__)

PROTEIN_BLOCK = "protein"
PEPTIDE_BLOCK = "peptide"
BLOCK_KEYWORDS = {
    PROTEIN_BLOCK: PROTEIN_BLOCK,
    PROTEIN_BLOCK + ":": PROTEIN_BLOCK,
    PEPTIDE_BLOCK: PEPTIDE_BLOCK,
    PEPTIDE_BLOCK + ":": PEPTIDE_BLOCK,
}

ASSIGNMENT = "="
LIST_SEPARATOR = ","
INDENT = "    "


class RuleErrorKind(enum.Enum):
    UNKNOWN_COMMAND = "unknown command"
    EXPECTED_TOKEN = "expected token"
    NUMERIC_CONVERSION = "numeric conversion failure"


class RuleParseError(ValueError):
    kind: RuleErrorKind
    token: str
    line: int

    def __init__(self, kind: RuleErrorKind, token: str, line: int):
        self.kind = kind
        self.token = token
        self.line = line
        super().__init__(f"Error parsing filter rules at line {line}: {kind.value} {token!r}")


class UnknownCommandError(RuleParseError):
    def __init__(self, token: str, line: int):
        super().__init__(RuleErrorKind.UNKNOWN_COMMAND, token, line)


class ExpectedTokenError(RuleParseError):
    def __init__(self, token: str, line: int):
        super().__init__(RuleErrorKind.EXPECTED_TOKEN, token, line)


class RuleConversionError(RuleParseError):
    def __init__(self, token: str, line: int):
        super().__init__(RuleErrorKind.NUMERIC_CONVERSION, token, line)


class _Scanner:
    """Single pass cursor over the rule text."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    @property
    def line(self) -> int:
        return self.text.count("\n", 0, self.pos) + 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def startswith(self, literal: str) -> bool:
        return self.text.startswith(literal, self.pos)

    def skip_whitespace(self) -> None:
        while not self.at_end() and self.text[self.pos].isspace():
            self.pos += 1

    def take_while(self, pred: Callable[[str], bool]) -> str:
        start = self.pos
        while not self.at_end() and pred(self.text[self.pos]):
            self.pos += 1
        return self.text[start : self.pos]

    def peek_word(self) -> str:
        end = self.pos
        while end < len(self.text) and not self.text[end].isspace():
            end += 1
        return self.text[self.pos : end]

    def take_word(self) -> str:
        return self.take_while(lambda ch: not ch.isspace())

    def take_value(self, expected: str) -> str:
        """Skips whitespace and returns the next word, which must exist."""
        self.skip_whitespace()
        if self.at_end():
            raise ExpectedTokenError(expected, self.line)
        return self.take_word()

    def expect(self, literal: str) -> None:
        self.skip_whitespace()
        if not self.startswith(literal):
            raise ExpectedTokenError(literal, self.line)
        self.pos += len(literal)


def _to_uint(token: str, line: int) -> int:
    if not (token.isascii() and token.isdigit()):
        raise RuleConversionError(token, line)
    return int(token)


def _to_float(token: str, line: int) -> float:
    # float() also accepts digit separators, e.g. 1_000
    if "_" in token:
        raise RuleConversionError(token, line)
    try:
        return float(token)
    except ValueError:
        raise RuleConversionError(token, line)


def _take_uint(scanner: _Scanner, expected: str) -> int:
    token = scanner.take_value(expected)
    return _to_uint(token, scanner.line)


def _take_float(scanner: _Scanner, expected: str) -> float:
    token = scanner.take_value(expected)
    return _to_float(token, scanner.line)


def _take_channel_list(scanner: _Scanner) -> List[int]:
    """Reads comma separated channels, e.g. 1, 2,3 ,4"""
    channels = []
    while True:
        scanner.skip_whitespace()
        if scanner.at_end():
            raise ExpectedTokenError("channel", scanner.line)
        line = scanner.line
        token = scanner.take_while(
            lambda ch: not ch.isspace() and ch != LIST_SEPARATOR
        )
        channels.append(_to_uint(token, line))

        scanner.skip_whitespace()
        if not scanner.startswith(LIST_SEPARATOR):
            return channels
        scanner.pos += len(LIST_SEPARATOR)


def _parse_protein_filter(scanner: _Scanner) -> ProteinFilter:
    line = scanner.line
    cmd = scanner.take_word()
    if cmd == SpectralCounts.type_key:
        scanner.expect(ASSIGNMENT)
        return SpectralCounts(_take_uint(scanner, "spectral count"))
    elif cmd == SequenceCounts.type_key:
        scanner.expect(ASSIGNMENT)
        return SequenceCounts(_take_uint(scanner, "sequence count"))
    elif cmd == ExcludeReverse.type_key:
        return ExcludeReverse()
    raise UnknownCommandError(cmd, line)


def _parse_peptide_filter(scanner: _Scanner) -> PeptideFilter:
    line = scanner.line
    cmd = scanner.take_word()
    if cmd == TotalIntensity.type_key:
        scanner.expect(ASSIGNMENT)
        return TotalIntensity(_take_float(scanner, "intensity"))
    elif cmd == TotalIntensityChannels.type_key:
        scanner.expect(ASSIGNMENT)
        channels = _take_channel_list(scanner)
        return TotalIntensityChannels(channels, _take_float(scanner, "intensity"))
    elif cmd == ChannelIntensity.type_key:
        scanner.expect(ASSIGNMENT)
        channel = _take_uint(scanner, "channel")
        return ChannelIntensity(channel, _take_float(scanner, "intensity"))
    elif cmd == ChannelCV.type_key:
        scanner.expect(ASSIGNMENT)
        channels = _take_channel_list(scanner)
        return ChannelCV(channels, _take_float(scanner, "cutoff"))
    elif cmd == SequenceMatch.type_key:
        scanner.expect(ASSIGNMENT)
        return SequenceMatch(scanner.take_value("sequence"))
    elif cmd == SequenceExclude.type_key:
        scanner.expect(ASSIGNMENT)
        return SequenceExclude(scanner.take_value("sequence"))
    elif cmd == Tryptic.type_key:
        return Tryptic()
    elif cmd == Unique.type_key:
        return Unique()
    raise UnknownCommandError(cmd, line)


def parse_rules(text: str) -> Filter:
    """Parses filter rule text into a Filter.

    Raises:
        RuleParseError: at the first unknown command, missing token or
            invalid number.
    """
    scanner = _Scanner(text)
    rule_filter = Filter()

    scanner.skip_whitespace()
    while not scanner.at_end():
        line = scanner.line
        keyword = scanner.take_word()
        if keyword not in BLOCK_KEYWORDS:
            raise UnknownCommandError(keyword, line)

        block = BLOCK_KEYWORDS[keyword]
        scanner.skip_whitespace()
        while not scanner.at_end() and scanner.peek_word() not in BLOCK_KEYWORDS:
            if block == PROTEIN_BLOCK:
                rule_filter = rule_filter.add_protein_filter(
                    _parse_protein_filter(scanner)
                )
            else:
                rule_filter = rule_filter.add_peptide_filter(
                    _parse_peptide_filter(scanner)
                )
            scanner.skip_whitespace()

    logger.debug(
        f"Parsed {len(rule_filter.protein_filters)} protein filters and {len(rule_filter.peptide_filters)} peptide filters"
    )
    return rule_filter


def _format_channels(channels) -> str:
    return ", ".join(map(str, channels))


def _format_predicate(predicate) -> str:
    if isinstance(predicate, (SpectralCounts, SequenceCounts)):
        return f"{predicate.type_key} {ASSIGNMENT} {predicate.n}"
    elif isinstance(predicate, TotalIntensity):
        return f"{predicate.type_key} {ASSIGNMENT} {predicate.cutoff!r}"
    elif isinstance(predicate, (TotalIntensityChannels, ChannelCV)):
        return f"{predicate.type_key} {ASSIGNMENT} {_format_channels(predicate.channels)} {predicate.cutoff!r}"
    elif isinstance(predicate, ChannelIntensity):
        return f"{predicate.type_key} {ASSIGNMENT} {predicate.channel} {predicate.cutoff!r}"
    elif isinstance(predicate, (SequenceMatch, SequenceExclude)):
        # patterns are read back as a single whitespace delimited token
        if len(predicate.pattern) == 0 or any(ch.isspace() for ch in predicate.pattern):
            raise FilterSerializationError(
                f"Cannot write {predicate.type_key} pattern {predicate.pattern!r} as rule text"
            )
        return f"{predicate.type_key} {ASSIGNMENT} {predicate.pattern}"
    return predicate.type_key


def format_rules(rule_filter: Filter) -> str:
    """Writes a Filter in the rule text format read by parse_rules.

    Raises:
        FilterSerializationError: if a sequence pattern is empty or contains
            whitespace, these cannot be read back by parse_rules.
    """
    lines = []
    if len(rule_filter.protein_filters) > 0:
        lines.append(PROTEIN_BLOCK + ":")
        lines.extend(INDENT + _format_predicate(f) for f in rule_filter.protein_filters)
    if len(rule_filter.peptide_filters) > 0:
        lines.append(PEPTIDE_BLOCK + ":")
        lines.extend(INDENT + _format_predicate(f) for f in rule_filter.peptide_filters)
    return "\n".join(lines) + "\n"
