"""Composable rules for filtering proteins and peptides in a Dataset.

A Filter holds protein-level and peptide-level predicates. A protein survives
if it passes all protein predicates and at least one of its peptides passes
all peptide predicates. Peptides failing any peptide predicate are removed.

Example rule text accepted by census_tmt.filter_rules.parse_rules:

    protein:
        spectral_counts = 10
        exclude_reverse
    peptide:
        sequence_exclude = C
        channel_cv = 1, 2, 3 0.05
        tryptic
        unique
"""

from __future__ import annotations

import collections
import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from . import stats
from .dataset import Dataset
from .protein import Peptide, Protein

logger = logging.getLogger(__name__)


class FilterSerializationError(ValueError):
    pass


def _channel_values(peptide: Peptide, channels: Tuple[int, ...]) -> List[int]:
    """Values of the given 1-based channels, channels that do not exist in the
    peptide are skipped."""
    return [
        peptide.values[channel - 1]
        for channel in channels
        if 1 <= channel <= len(peptide.values)
    ]


class ProteinFilter(ABC):
    """Protein-level predicate. The type key is used in rule text and filter
    documents."""

    type_key: str = ""

    @abstractmethod
    def passes(self, protein: Protein) -> bool:
        pass

    def passes_counts(self, spectral_count: int, sequence_count: int) -> bool:
        """Re-evaluation after peptide filtering, only count based predicates
        can fail here."""
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_key, **dataclasses.asdict(self)}


@dataclass(frozen=True)
class SpectralCounts(ProteinFilter):
    """Pass through proteins that have spectral counts >= n"""

    n: int
    type_key = "spectral_counts"

    def passes(self, protein: Protein) -> bool:
        return protein.spectral_count >= self.n

    def passes_counts(self, spectral_count: int, sequence_count: int) -> bool:
        return spectral_count >= self.n


@dataclass(frozen=True)
class SequenceCounts(ProteinFilter):
    """Pass through proteins that have sequence counts >= n"""

    n: int
    type_key = "sequence_counts"

    def passes(self, protein: Protein) -> bool:
        return protein.sequence_count >= self.n

    def passes_counts(self, spectral_count: int, sequence_count: int) -> bool:
        return sequence_count >= self.n


@dataclass(frozen=True)
class ExcludeReverse(ProteinFilter):
    """Remove hits to the reversed (decoy) database"""

    type_key = "exclude_reverse"

    def passes(self, protein: Protein) -> bool:
        return not protein.is_reverse()


class PeptideFilter(ABC):
    """Peptide-level predicate. Channel indices are 1-based."""

    type_key: str = ""

    @abstractmethod
    def passes(self, peptide: Peptide) -> bool:
        pass

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        if "channels" in d:
            d["channels"] = list(d["channels"])
        return {"type": self.type_key, **d}


@dataclass(frozen=True)
class SequenceMatch(PeptideFilter):
    """Include only peptides with a sequence containing the pattern"""

    pattern: str
    type_key = "sequence_match"

    def passes(self, peptide: Peptide) -> bool:
        return self.pattern in peptide.sequence


@dataclass(frozen=True)
class SequenceExclude(PeptideFilter):
    """Exclude all peptides with a sequence containing the pattern"""

    pattern: str
    type_key = "sequence_exclude"

    def passes(self, peptide: Peptide) -> bool:
        return self.pattern not in peptide.sequence


@dataclass(frozen=True)
class TotalIntensity(PeptideFilter):
    """Pass through peptides with a summed intensity over all channels >= cutoff"""

    cutoff: float
    type_key = "total_intensity"

    def passes(self, peptide: Peptide) -> bool:
        return peptide.total() >= self.cutoff


@dataclass(frozen=True)
class TotalIntensityChannels(PeptideFilter):
    """Pass through peptides with a summed intensity over the given channels >=
    cutoff. Channels that do not exist contribute nothing."""

    channels: Tuple[int, ...]
    cutoff: float
    type_key = "total_intensity_channels"

    def __post_init__(self):
        object.__setattr__(self, "channels", tuple(self.channels))

    def passes(self, peptide: Peptide) -> bool:
        return sum(_channel_values(peptide, self.channels)) >= self.cutoff


@dataclass(frozen=True)
class ChannelIntensity(PeptideFilter):
    """Pass through peptides with an intensity >= cutoff in the given channel.

    A channel that does not exist in the peptide is ignored, i.e. the
    peptide passes.
    """

    channel: int
    cutoff: float
    type_key = "channel_intensity"

    def passes(self, peptide: Peptide) -> bool:
        if not 1 <= self.channel <= len(peptide.values):
            return True
        return peptide.values[self.channel - 1] >= self.cutoff


@dataclass(frozen=True)
class ChannelCV(PeptideFilter):
    """Pass through peptides whose coefficient of variation between the given
    channels is < cutoff.

    Channels that do not exist are left out of the calculation. If the CV is
    undefined, e.g. because all values are zero, the peptide is not removed.
    """

    channels: Tuple[int, ...]
    cutoff: float
    type_key = "channel_cv"

    def __post_init__(self):
        object.__setattr__(self, "channels", tuple(self.channels))

    def passes(self, peptide: Peptide) -> bool:
        cv = stats.cv(_channel_values(peptide, self.channels))
        return not cv >= self.cutoff


@dataclass(frozen=True)
class Tryptic(PeptideFilter):
    """Include only peptides with two tryptic ends"""

    type_key = "tryptic"

    def passes(self, peptide: Peptide) -> bool:
        return peptide.tryptic()


@dataclass(frozen=True)
class Unique(PeptideFilter):
    """Include only unique peptides"""

    type_key = "unique"

    def passes(self, peptide: Peptide) -> bool:
        return peptide.unique


PROTEIN_FILTER_TYPES = {
    cls.type_key: cls for cls in [SpectralCounts, SequenceCounts, ExcludeReverse]
}

PEPTIDE_FILTER_TYPES = {
    cls.type_key: cls
    for cls in [
        SequenceMatch,
        SequenceExclude,
        TotalIntensity,
        TotalIntensityChannels,
        ChannelIntensity,
        ChannelCV,
        Tryptic,
        Unique,
    ]
}


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_channel_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(_is_uint(v) for v in value)


# checks per field annotation of the predicate dataclasses, e.g. a TOML or
# JSON document could give "10" where a channel number is expected
_FIELD_CHECKS = {
    "int": (_is_uint, "a non-negative integer"),
    "float": (_is_real, "a number"),
    "str": (lambda value: isinstance(value, str), "a string"),
    "Tuple[int, ...]": (_is_channel_list, "a list of non-negative integers"),
}


def _predicate_from_dict(d: Dict[str, Any], filter_types: Dict[str, type]):
    if not isinstance(d, dict):
        raise FilterSerializationError(f"Expected a table for each filter, found {d!r}")
    d = dict(d)
    type_key = d.pop("type", None)
    if type_key not in filter_types:
        raise FilterSerializationError(
            f"Unknown filter type {type_key!r}, should be one of {', '.join(filter_types)}"
        )

    filter_type = filter_types[type_key]
    for field in dataclasses.fields(filter_type):
        if field.name not in d:
            continue
        is_valid, description = _FIELD_CHECKS[field.type]
        if not is_valid(d[field.name]):
            raise FilterSerializationError(
                f"Invalid value {d[field.name]!r} for field {field.name!r} of filter {type_key!r}, expected {description}"
            )
        if field.type == "float":
            d[field.name] = float(d[field.name])

    try:
        return filter_type(**d)
    except TypeError as e:
        raise FilterSerializationError(f"Invalid fields for filter {type_key!r}: {e}")


@dataclass(frozen=True)
class Filter:
    """Provides filtering functionality on datasets and proteins.

    Filters are immutable, add_protein_filter and add_peptide_filter return a
    new Filter, so that they can be chained:

        Filter().add_protein_filter(SpectralCounts(2)).add_peptide_filter(Unique())

    The order of the predicates does not influence the result, two filters
    with the same predicates compare equal regardless of their order.
    """

    protein_filters: Tuple[ProteinFilter, ...] = ()
    peptide_filters: Tuple[PeptideFilter, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "protein_filters", tuple(self.protein_filters))
        object.__setattr__(self, "peptide_filters", tuple(self.peptide_filters))

    def __eq__(self, other):
        if not isinstance(other, Filter):
            return NotImplemented
        return collections.Counter(self.protein_filters) == collections.Counter(
            other.protein_filters
        ) and collections.Counter(self.peptide_filters) == collections.Counter(
            other.peptide_filters
        )

    def __hash__(self):
        return hash(
            (frozenset(self.protein_filters), frozenset(self.peptide_filters))
        )

    def is_empty(self) -> bool:
        return len(self.protein_filters) == 0 and len(self.peptide_filters) == 0

    def add_protein_filter(self, protein_filter: ProteinFilter) -> Filter:
        return dataclasses.replace(
            self, protein_filters=self.protein_filters + (protein_filter,)
        )

    def add_peptide_filter(self, peptide_filter: PeptideFilter) -> Filter:
        return dataclasses.replace(
            self, peptide_filters=self.peptide_filters + (peptide_filter,)
        )

    def apply(self, dataset: Dataset) -> Dataset:
        """Returns a new Dataset with the proteins that pass the filter.

        The input dataset is left unchanged.
        """
        proteins = []
        for protein in dataset.proteins:
            filtered_protein = self.apply_protein(protein)
            if filtered_protein is not None:
                proteins.append(filtered_protein)

        logger.debug(
            f"Retained {len(proteins)} out of {len(dataset.proteins)} proteins after filtering"
        )
        return Dataset(proteins=proteins, channels=dataset.channels)

    def apply_protein(self, protein: Protein) -> Optional[Protein]:
        """Filters a single protein.

        Returns None if the protein fails one of the protein filters, or if
        none of its peptides pass the peptide filters. Otherwise, returns a
        copy of the protein with only the passing peptides and with its
        spectral and sequence counts recalculated from these peptides.
        """
        for protein_filter in self.protein_filters:
            if not protein_filter.passes(protein):
                return None

        peptides = [
            peptide.copy()
            for peptide in protein.peptides
            if all(f.passes(peptide) for f in self.peptide_filters)
        ]

        # we must have at least a single peptide
        if len(peptides) == 0:
            return None

        spectral_count = len(peptides)
        sequence_count = len({peptide.sequence for peptide in peptides})

        # second pass through protein filters, in case we no longer have
        # enough peptides left
        for protein_filter in self.protein_filters:
            if not protein_filter.passes_counts(spectral_count, sequence_count):
                return None

        return dataclasses.replace(
            protein,
            peptides=peptides,
            spectral_count=spectral_count,
            sequence_count=sequence_count,
        )

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "protein_filters": [f.to_dict() for f in self.protein_filters],
            "peptide_filters": [f.to_dict() for f in self.peptide_filters],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, List[Dict[str, Any]]]) -> Filter:
        unknown_keys = set(d.keys()) - {"protein_filters", "peptide_filters"}
        if len(unknown_keys) > 0:
            raise FilterSerializationError(
                f"Unknown keys in filter document: {', '.join(sorted(unknown_keys))}"
            )
        for key in ("protein_filters", "peptide_filters"):
            if not isinstance(d.get(key, []), list):
                raise FilterSerializationError(f"Expected a list of filters for {key}")
        return cls(
            protein_filters=[
                _predicate_from_dict(f, PROTEIN_FILTER_TYPES)
                for f in d.get("protein_filters", [])
            ],
            peptide_filters=[
                _predicate_from_dict(f, PEPTIDE_FILTER_TYPES)
                for f in d.get("peptide_filters", [])
            ],
        )
