from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Set

import numpy as np

# accessions of decoy hits from a reversed sequence database
REVERSE_MARKER = "Reverse"

TRYPTIC_SITES = ("K", "R")
TERMINUS = "-"


@dataclass
class Peptide:
    """Peptide-level TMT quantification data.

    The sequence includes the flanking residues, e.g. K.AEPTIDEK.L, where a
    flanking residue of - denotes the protein N- or C-terminus.

    purity and scan are only filled in if the Census file reports them.
    """

    sequence: str
    values: List[int] = field(default_factory=list)
    unique: bool = False
    purity: Optional[float] = None
    scan: Optional[int] = None

    def tryptic(self) -> bool:
        """Returns True if the peptide has two tryptic ends."""
        if not self.sequence.startswith(TRYPTIC_SITES + (TERMINUS,)):
            return False

        flanked = self.sequence.split(".")
        if len(flanked) < 2 or len(flanked[1]) == 0:
            return False

        c_term = self.sequence.endswith(TERMINUS)
        return flanked[1].endswith(TRYPTIC_SITES) or c_term

    def total(self) -> int:
        return sum(self.values)

    def ratios(self) -> np.ndarray:
        """Intensity of each channel divided by the summed intensity of all channels."""
        values = np.asarray(self.values, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            return values / np.sum(values)

    def swap_channels(self, a: int, b: int) -> None:
        """Swaps channels a and b (0-based) in place.

        Raises:
            IndexError: if a or b is not a valid channel index.
        """
        for idx in (a, b):
            if not 0 <= idx < len(self.values):
                raise IndexError(
                    f"Channel index {idx} out of range for peptide with {len(self.values)} channels"
                )
        self.values[a], self.values[b] = self.values[b], self.values[a]

    def copy(self) -> Peptide:
        return replace(self, values=list(self.values))


@dataclass
class Protein:
    """Protein-level TMT quantification data, as well as additional metadata
    about the protein that is reported in the Census file.

    sequence_coverage is kept as reported, i.e. as a percentage (0-100).
    """

    accession: str
    description: str = ""
    spectral_count: int = 0
    sequence_count: int = 0
    sequence_coverage: float = 0.0
    molecular_weight: int = 0
    peptides: List[Peptide] = field(default_factory=list)
    channels: int = 0

    @property
    def coverage_fraction(self) -> float:
        return self.sequence_coverage / 100.0

    def is_reverse(self) -> bool:
        return REVERSE_MARKER in self.accession

    def distinct_sequences(self) -> Set[str]:
        return {peptide.sequence for peptide in self.peptides}

    def total(self) -> np.ndarray:
        """Returns the summed intensities of all peptides for each channel."""
        totals = np.zeros(self.channels, dtype=np.int64)
        for peptide in self.peptides:
            totals += np.asarray(peptide.values, dtype=np.int64)
        return totals

    def ratios(self) -> np.ndarray:
        """Summed intensity of each channel divided by the summed intensity
        of all channels."""
        totals = self.total().astype(np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            return totals / np.sum(totals)
