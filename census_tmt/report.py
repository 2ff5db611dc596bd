import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from .dataset import Dataset

logger = logging.getLogger(__name__)

PROTEIN_REPORT_HEADERS = [
    "accession",
    "description",
    "spectral_count",
    "sequence_count",
]


def channel_headers(channels: int) -> List[str]:
    return [f"channel_{i}" for i in range(1, channels + 1)]


def protein_table(
    dataset: Dataset, normalize_to: Optional[List[int]] = None
) -> pd.DataFrame:
    """Summarizes the TMT intensities of each protein.

    Args:
        dataset (Dataset): typically a filtered dataset.
        normalize_to (List[int], optional): 1-based channels, e.g. the control
            channels. If given, the summed intensity of each channel is divided
            by the mean summed intensity of these channels. Defaults to None.

    Returns:
        pd.DataFrame: one row per protein with accession, description,
            spectral_count, sequence_count and channel_1 ... channel_N.
    """
    if normalize_to is not None:
        if len(normalize_to) == 0:
            raise ValueError("Cannot normalize to an empty list of channels")
        invalid_channels = [c for c in normalize_to if not 1 <= c <= dataset.channels]
        if len(invalid_channels) > 0:
            raise ValueError(
                f"Cannot normalize to channels {invalid_channels}, dataset has {dataset.channels} channels"
            )

    rows = []
    for protein in dataset.proteins:
        totals = protein.total()
        if normalize_to is not None:
            totals = totals.astype(np.float64)
            control = np.mean(totals[[c - 1 for c in normalize_to]])
            with np.errstate(divide="ignore", invalid="ignore"):
                totals = totals / control
        rows.append(
            [
                protein.accession,
                protein.description,
                protein.spectral_count,
                protein.sequence_count,
                *totals,
            ]
        )

    return pd.DataFrame(
        rows, columns=PROTEIN_REPORT_HEADERS + channel_headers(dataset.channels)
    )


def write_protein_table(df: pd.DataFrame, output_file: str) -> None:
    logger.info(f"Writing {len(df.index)} proteins to {output_file}")
    df.to_csv(output_file, sep="\t", index=False)
