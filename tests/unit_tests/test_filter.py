import copy

import pytest

import census_tmt.parsers.census as census
from census_tmt.dataset import Dataset
from census_tmt.filter import (
    Filter,
    FilterSerializationError,
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
from census_tmt.protein import Peptide, Protein


def accessions(dataset):
    return [protein.accession for protein in dataset.proteins]


def peptide_values(dataset, accession):
    return [peptide.values for peptide in dataset.map()[accession].peptides]


ALL_FILTERS = [
    Filter(),
    Filter().add_protein_filter(SpectralCounts(2)),
    Filter().add_protein_filter(SequenceCounts(2)).add_peptide_filter(Unique()),
    Filter().add_protein_filter(ExcludeReverse()).add_peptide_filter(Tryptic()),
    Filter().add_peptide_filter(TotalIntensityChannels((1, 2), 3000)),
    Filter().add_peptide_filter(ChannelCV((1, 2, 3), 0.1)),
    Filter()
    .add_protein_filter(SpectralCounts(3))
    .add_peptide_filter(SequenceExclude("C"))
    .add_peptide_filter(ChannelIntensity(1, 1000)),
]


class TestFilterBuilder:
    def test_default_is_empty(self):
        assert Filter().is_empty()
        assert Filter().protein_filters == ()
        assert Filter().peptide_filters == ()

    def test_add_returns_new_filter(self):
        empty = Filter()
        rule_filter = empty.add_protein_filter(SpectralCounts(10))
        assert empty.is_empty()
        assert rule_filter.protein_filters == (SpectralCounts(10),)

    def test_equality_ignores_order(self):
        a = (
            Filter()
            .add_protein_filter(SpectralCounts(10))
            .add_protein_filter(SequenceCounts(2))
            .add_peptide_filter(Tryptic())
            .add_peptide_filter(Unique())
        )
        b = (
            Filter()
            .add_peptide_filter(Unique())
            .add_protein_filter(SequenceCounts(2))
            .add_peptide_filter(Tryptic())
            .add_protein_filter(SpectralCounts(10))
        )
        assert a == b
        assert hash(a) == hash(b)

    def test_inequality(self):
        assert Filter().add_peptide_filter(SequenceMatch("C")) != Filter().add_peptide_filter(
            SequenceExclude("C")
        )
        assert Filter().add_protein_filter(SpectralCounts(2)) != Filter().add_protein_filter(
            SpectralCounts(3)
        )

    def test_duplicate_predicates_count(self):
        once = Filter().add_peptide_filter(Unique())
        twice = once.add_peptide_filter(Unique())
        assert once != twice

    def test_channel_lists_become_tuples(self):
        assert ChannelCV([1, 2], 0.5) == ChannelCV((1, 2), 0.5)
        assert TotalIntensityChannels([1, 2], 5.0).channels == (1, 2)


class TestApply:
    def test_empty_filter_is_identity(self, six_channel_dataset):
        assert Filter().apply(six_channel_dataset) == six_channel_dataset

    def test_empty_filter_recomputes_counts(self, census_text):
        dataset = census.parse(census_text)
        filtered = Filter().apply(dataset)
        assert accessions(filtered) == accessions(dataset)
        protein = filtered.proteins[0]
        assert protein.peptides == dataset.proteins[0].peptides
        # reported counts are 10 and 2, but there are only 2 peptide rows
        assert protein.spectral_count == 2
        assert protein.sequence_count == 2

    @pytest.mark.parametrize("rule_filter", ALL_FILTERS)
    def test_idempotent(self, six_channel_dataset, rule_filter):
        once = rule_filter.apply(six_channel_dataset)
        assert rule_filter.apply(once) == once

    @pytest.mark.parametrize("rule_filter", ALL_FILTERS)
    def test_counts_match_peptides(self, six_channel_dataset, rule_filter):
        for protein in rule_filter.apply(six_channel_dataset):
            assert protein.spectral_count == len(protein.peptides)
            assert protein.sequence_count == len(protein.distinct_sequences())

    def test_adding_predicates_is_monotone(self, six_channel_dataset):
        rule_filter = Filter()
        previous = rule_filter.apply(six_channel_dataset)
        for predicate in [
            TotalIntensityChannels((1, 2), 3000),
            Unique(),
            Tryptic(),
        ]:
            rule_filter = rule_filter.add_peptide_filter(predicate)
            current = rule_filter.apply(six_channel_dataset)
            assert len(current) <= len(previous)
            assert sum(p.spectral_count for p in current) <= sum(
                p.spectral_count for p in previous
            )
            previous = current

    def test_input_is_not_mutated(self, six_channel_dataset):
        original = copy.deepcopy(six_channel_dataset)
        filtered = (
            Filter().add_peptide_filter(Unique()).apply(six_channel_dataset)
        )
        filtered.proteins[0].peptides[0].swap_channels(0, 1)
        assert six_channel_dataset == original

    def test_channels_are_preserved(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(SequenceMatch("ZZZ")).apply(
            six_channel_dataset
        )
        assert filtered.proteins == []
        assert filtered.channels == 6

    def test_protein_order_is_preserved(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(Unique()).apply(six_channel_dataset)
        assert accessions(filtered) == ["proteinA", "proteinB", "Reverse_proteinC"]

    def test_apply_protein_returns_none(self):
        protein = Protein("proteinA", peptides=[Peptide("K.AK.L", [1])], channels=1)
        assert Filter().add_peptide_filter(Unique()).apply_protein(protein) is None

    def test_empty_dataset(self):
        filtered = Filter().add_peptide_filter(Unique()).apply(Dataset(channels=10))
        assert filtered == Dataset(proteins=[], channels=10)


class TestProteinFilters:
    def test_spectral_counts_prefilter_uses_reported_count(self):
        # reported spectral count is below the threshold, although the protein
        # has enough peptide rows
        protein = Protein(
            "proteinA",
            spectral_count=1,
            sequence_count=1,
            peptides=[Peptide("K.AK.L", [1]), Peptide("K.AK.L", [2])],
            channels=1,
        )
        assert Filter().add_protein_filter(SpectralCounts(2)).apply_protein(protein) is None

    def test_spectral_counts(self, six_channel_dataset):
        filtered = Filter().add_protein_filter(SpectralCounts(2)).apply(
            six_channel_dataset
        )
        assert accessions(filtered) == ["proteinA", "Reverse_proteinC"]

    def test_sequence_counts(self, six_channel_dataset):
        filtered = Filter().add_protein_filter(SequenceCounts(3)).apply(
            six_channel_dataset
        )
        assert accessions(filtered) == ["proteinA"]

    def test_exclude_reverse(self, six_channel_dataset):
        filtered = Filter().add_protein_filter(ExcludeReverse()).apply(
            six_channel_dataset
        )
        assert accessions(filtered) == ["proteinA", "proteinB"]

    def test_spectral_counts_after_peptide_filtering(self, six_channel_dataset):
        # proteinA has 4 peptides, only 3 of which are tryptic
        rule_filter = (
            Filter().add_protein_filter(SpectralCounts(4)).add_peptide_filter(Tryptic())
        )
        assert rule_filter.apply(six_channel_dataset).proteins == []

    def test_sequence_counts_after_peptide_filtering(self, six_channel_dataset):
        # unique peptides of proteinA: 2x K.AEPTIDEK.L and S.NONTRYPTIC.A
        rejecting = (
            Filter().add_protein_filter(SequenceCounts(3)).add_peptide_filter(Unique())
        )
        assert "proteinA" not in rejecting.apply(six_channel_dataset).accessions()

        passing = (
            Filter().add_protein_filter(SequenceCounts(2)).add_peptide_filter(Unique())
        )
        protein = passing.apply(six_channel_dataset).map()["proteinA"]
        assert protein.spectral_count == 3
        assert protein.sequence_count == 2


class TestPeptideFilters:
    def test_sequence_match(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(SequenceMatch("EPTIDE")).apply(
            six_channel_dataset
        )
        assert accessions(filtered) == ["proteinA"]
        assert [p.sequence for p in filtered.proteins[0].peptides] == [
            "K.AEPTIDEK.L",
            "K.AEPTIDEK.L",
            "R.CEPTIDER.-",
        ]

    def test_sequence_match_is_not_a_regex(self):
        peptide = Peptide("K.AEPTIDEK.L", [1])
        assert not SequenceMatch("A.*K").passes(peptide)
        assert SequenceMatch("K.A").passes(peptide)

    def test_sequence_exclude(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(SequenceExclude("C")).apply(
            six_channel_dataset
        )
        assert [p.sequence for p in filtered.map()["proteinA"].peptides] == [
            "K.AEPTIDEK.L",
            "K.AEPTIDEK.L",
        ]
        # all peptides of proteinB and the decoy protein contain a C
        assert accessions(filtered) == ["proteinA"]
        assert filtered.map()["proteinA"].sequence_count == 1

    def test_total_intensity(self):
        assert TotalIntensity(3000).passes(Peptide("K.AK.L", [1000, 2000]))
        assert not TotalIntensity(3000.5).passes(Peptide("K.AK.L", [1000, 2000]))

    def test_total_intensity_channels(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(
            TotalIntensityChannels((1, 2), 3000)
        ).apply(six_channel_dataset)
        assert accessions(filtered) == ["proteinA", "Reverse_proteinC"]
        assert peptide_values(filtered, "proteinA") == [
            [3000, 0, 10, 10, 10, 10],
            [1500, 1600, 1700, 1800, 1900, 2000],
            [4000, 4000, 4000, 4000, 4000, 4000],
        ]
        protein = filtered.map()["proteinA"]
        assert protein.spectral_count == 3
        assert protein.sequence_count == 3

    def test_total_intensity_channels_skips_missing_channels(self):
        peptide = Peptide("K.AK.L", [1000, 2000])
        assert TotalIntensityChannels((1, 2, 9), 3000).passes(peptide)
        assert not TotalIntensityChannels((1, 9), 3000).passes(peptide)
        assert not TotalIntensityChannels((0, 9), 1).passes(peptide)

    def test_channel_intensity(self):
        peptide = Peptide("K.AK.L", [1000, 2000])
        assert ChannelIntensity(2, 2000).passes(peptide)
        assert not ChannelIntensity(1, 1001).passes(peptide)

    def test_channel_intensity_missing_channel_passes(self):
        peptide = Peptide("K.AK.L", [1000, 2000])
        assert ChannelIntensity(3, 1e9).passes(peptide)
        assert ChannelIntensity(0, 1e9).passes(peptide)

    def test_channel_cv(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(ChannelCV((1, 2, 3), 0.1)).apply(
            six_channel_dataset
        )
        assert accessions(filtered) == ["proteinA", "Reverse_proteinC"]
        assert peptide_values(filtered, "proteinA") == [
            [1500, 1600, 1700, 1800, 1900, 2000],
            [4000, 4000, 4000, 4000, 4000, 4000],
        ]

    def test_channel_cv_is_strictly_less(self):
        peptide = Peptide("K.AK.L", [2, 4, 4, 4, 5, 5, 7, 9])  # cv = 0.4
        channels = tuple(range(1, 9))
        assert not ChannelCV(channels, 0.4).passes(peptide)
        assert ChannelCV(channels, 0.41).passes(peptide)

    def test_channel_cv_undefined_passes(self):
        assert ChannelCV((1, 2), 0.1).passes(Peptide("K.AK.L", [0, 0]))
        assert ChannelCV((5, 6), 0.1).passes(Peptide("K.AK.L", [0, 1000]))

    def test_channel_cv_skips_missing_channels(self):
        assert ChannelCV((1, 7), 0.1).passes(Peptide("K.AK.L", [1, 2998]))

    def test_tryptic(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(Tryptic()).apply(six_channel_dataset)
        assert [p.sequence for p in filtered.map()["proteinA"].peptides] == [
            "K.AEPTIDEK.L",
            "K.AEPTIDEK.L",
            "R.CEPTIDER.-",
        ]
        assert filtered.map()["proteinA"].sequence_count == 2

    def test_unique(self, six_channel_dataset):
        filtered = Filter().add_peptide_filter(Unique()).apply(six_channel_dataset)
        assert all(p.unique for p in filtered.map()["proteinA"].peptides)
        assert len(filtered.map()["proteinA"].peptides) == 3

    def test_all_peptide_filters_must_pass(self, six_channel_dataset):
        filtered = (
            Filter()
            .add_peptide_filter(Unique())
            .add_peptide_filter(Tryptic())
            .add_peptide_filter(ChannelIntensity(1, 1000))
            .apply(six_channel_dataset)
        )
        assert peptide_values(filtered, "proteinA") == [[3000, 0, 10, 10, 10, 10]]
        assert accessions(filtered) == ["proteinA", "Reverse_proteinC"]


class TestFilterDict:
    def test_round_trip(self):
        rule_filter = (
            Filter()
            .add_protein_filter(SpectralCounts(10))
            .add_protein_filter(ExcludeReverse())
            .add_peptide_filter(ChannelCV((1, 2, 6, 7), 0.05))
            .add_peptide_filter(SequenceExclude("C"))
            .add_peptide_filter(Tryptic())
        )
        assert Filter.from_dict(rule_filter.to_dict()) == rule_filter

    def test_to_dict(self):
        rule_filter = (
            Filter()
            .add_protein_filter(ExcludeReverse())
            .add_peptide_filter(ChannelIntensity(1, 1000.0))
            .add_peptide_filter(ChannelCV((1, 2), 0.05))
        )
        assert rule_filter.to_dict() == {
            "protein_filters": [{"type": "exclude_reverse"}],
            "peptide_filters": [
                {"type": "channel_intensity", "channel": 1, "cutoff": 1000.0},
                {"type": "channel_cv", "channels": [1, 2], "cutoff": 0.05},
            ],
        }

    def test_missing_sections(self):
        assert Filter.from_dict({}) == Filter()

    def test_unknown_type(self):
        with pytest.raises(FilterSerializationError, match="Unknown filter type"):
            Filter.from_dict({"peptide_filters": [{"type": "intensity"}]})

    def test_missing_field(self):
        with pytest.raises(FilterSerializationError):
            Filter.from_dict({"protein_filters": [{"type": "spectral_counts"}]})

    def test_unknown_section(self):
        with pytest.raises(FilterSerializationError):
            Filter.from_dict({"psm_filters": []})

    @pytest.mark.parametrize(
        "predicate",
        [
            {"type": "spectral_counts", "n": "10"},
            {"type": "sequence_counts", "n": -1},
            {"type": "sequence_counts", "n": True},
            {"type": "channel_cv", "channels": "12", "cutoff": 0.05},
            {"type": "channel_cv", "channels": [1, "2"], "cutoff": 0.05},
            {"type": "channel_cv", "channels": [1, 2], "cutoff": "0.05"},
            {"type": "channel_intensity", "channel": 1.5, "cutoff": 1000},
            {"type": "total_intensity", "cutoff": False},
            {"type": "sequence_match", "pattern": 5},
        ],
    )
    def test_invalid_field_value(self, predicate):
        section = (
            "protein_filters"
            if predicate["type"] in ("spectral_counts", "sequence_counts")
            else "peptide_filters"
        )
        with pytest.raises(FilterSerializationError, match="Invalid value"):
            Filter.from_dict({section: [predicate]})

    def test_integer_cutoff_is_converted_to_float(self):
        rule_filter = Filter.from_dict(
            {"peptide_filters": [{"type": "total_intensity", "cutoff": 5000}]}
        )
        assert rule_filter.peptide_filters == (TotalIntensity(5000.0),)
        assert isinstance(rule_filter.peptide_filters[0].cutoff, float)

    def test_filter_is_not_a_table(self):
        with pytest.raises(FilterSerializationError):
            Filter.from_dict({"peptide_filters": ["unique"]})

    def test_section_is_not_a_list(self):
        with pytest.raises(FilterSerializationError):
            Filter.from_dict({"protein_filters": {"type": "exclude_reverse"}})
