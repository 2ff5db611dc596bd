import pytest

from census_tmt.protein import Peptide, Protein
from census_tmt.dataset import Dataset

TWO_CHANNEL_HEADER = "\t".join(
    [
        "H",
        "SLine",
        "UNIQUE",
        "SEQUENCE",
        "m/z_126.127726_int",
        "norm_m/z_126.127726_int",
        "m/z_127.124761_int",
        "norm_m/z_127.124761_int",
    ]
)


def census_lines(*rows):
    return "\n".join("\t".join(map(str, row)) for row in rows) + "\n"


@pytest.fixture
def census_text():
    """Two channel Census file with two proteins.

    line 1-3: headers, line 4: protein, line 5-6: peptides,
    line 7: decoy protein, line 8: peptide
    """
    return (
        "H\tCensus version 2.51\n"
        "H\tPLine\tLOCUS\tSPEC_COUNT\tSEQ_COUNT\tSEQ_COVERAGE\tMOLWT\tDESCRIPTION\n"
        + TWO_CHANNEL_HEADER
        + "\n"
        + census_lines(
            ["P", "sp|P02768|ALBU_HUMAN", 10, 2, "12.5%", 69367, "Serum albumin"],
            ["S", "U", "K.LVNEVTEFAK.T", 1000, 0.5, 2500, 0.5],
            ["S", "", "R.AEFAEVSK.L", 1, 0.1, 2998, 0.9],
            ["P", "Reverse_sp|Q99999|DECOY", 3, 1, "5.0%", 12000, "decoy protein"],
            ["S", "U", "-.MDKDK.-", 5000, 0.5, 84, 0.5],
        )
    )


@pytest.fixture
def six_channel_dataset():
    """Dataset with six channels built directly from the entity model."""
    peptides_a = [
        Peptide("K.AEPTIDEK.L", [1, 2998, 5000, 84, 4738, 9384], unique=True),
        Peptide("K.AEPTIDEK.L", [3000, 0, 10, 10, 10, 10], unique=True),
        Peptide("R.CEPTIDER.-", [1500, 1600, 1700, 1800, 1900, 2000], unique=False),
        Peptide("S.NONTRYPTIC.A", [4000, 4000, 4000, 4000, 4000, 4000], unique=True),
    ]
    peptides_b = [
        Peptide("-.MSEQUENCEK.A", [10, 20, 30, 40, 50, 60], unique=True),
    ]
    peptides_c = [
        Peptide("K.DECOYPEPK.R", [9000, 9000, 9000, 9000, 9000, 9000], unique=True),
        Peptide("K.DECOYPEPR.R", [9000, 9000, 9000, 9000, 9000, 9000], unique=True),
    ]
    return Dataset(
        proteins=[
            Protein("proteinA", "protein A", 4, 3, 25.0, 50000, peptides_a, 6),
            Protein("proteinB", "protein B", 1, 1, 3.2, 20000, peptides_b, 6),
            Protein("Reverse_proteinC", "decoy C", 2, 2, 10.0, 30000, peptides_c, 6),
        ],
        channels=6,
    )
