from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set, TYPE_CHECKING

from .protein import Protein

# for type hints only
if TYPE_CHECKING:
    from .filter import Filter


@dataclass
class Dataset:
    """Container for the proteins read from a single Census file."""

    proteins: List[Protein] = field(default_factory=list)
    channels: int = 0

    def __iter__(self) -> Iterator[Protein]:
        return iter(self.proteins)

    def __len__(self) -> int:
        return len(self.proteins)

    def accessions(self) -> Set[str]:
        """Returns the set of all protein accessions in the dataset."""
        return {protein.accession for protein in self.proteins}

    def map(self) -> Dict[str, Protein]:
        """Maps protein accessions to proteins. If an accession occurs more than
        once, the last protein with that accession is kept."""
        return {protein.accession: protein for protein in self.proteins}

    def filter(self, filter: Filter) -> Dataset:
        return filter.apply(self)
