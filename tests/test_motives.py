from __future__ import annotations

import pytest

from chronodose_agent.errors import MalformedMetadata
from chronodose_agent.models import BookingMetadata, ResolvedIdentifierSet
from chronodose_agent.motives import motive_filter, resolve

from .fakes import metadata_document


@pytest.mark.parametrize(
    "name, expected",
    [
        ("1ère dose Pfizer-BioNTech", True),
        ("2ème dose Moderna", False),
        ("Vaccination COVID19 Pfizer", False),
        ("1re injection vaccin COVID-19 (Pfizer-BioNTech)", True),
        ("2nde injection vaccin COVID-19 (Pfizer-BioNTech)", False),
        ("PFIZER 1", True),
    ],
)
def test_motive_filter(name, expected):
    assert motive_filter(name) is expected


def test_motive_filter_only_strips_literal_nineteen():
    # "119" keeps a "1" once the "19" is removed.
    assert motive_filter("Pfizer lot 119") is True
    assert motive_filter("Pfizer 19") is False


def test_resolve_single_agenda():
    metadata = BookingMetadata.from_payload(metadata_document())

    resolved = resolve(metadata, "5")

    assert resolved == ResolvedIdentifierSet(
        agenda_ids=frozenset({10}),
        practice_ids=frozenset({5}),
        visit_motive_ids=frozenset({1}),
    )
    assert resolved.agenda_param == "10"
    assert resolved.practice_param == "5"
    assert resolved.visit_motive_param == "1"
    assert not resolved.is_empty


def test_resolve_without_matching_motive_is_empty():
    metadata = BookingMetadata.from_payload(
        metadata_document(motives=[{"id": 1, "name": "2ème dose Moderna"}, {"id": 2, "name": "Consultation"}])
    )

    resolved = resolve(metadata, "5")

    assert resolved.agenda_ids == frozenset()
    assert resolved.practice_ids == frozenset()
    assert resolved.visit_motive_ids == frozenset()
    assert resolved.is_empty


def test_resolve_excludes_agendas_without_hinted_practice():
    metadata = BookingMetadata.from_payload(
        metadata_document(
            motives=[{"id": 1, "name": "1ère dose Pfizer"}, {"id": 3, "name": "1ère injection Pfizer"}],
            agendas=[
                {"id": 10, "visit_motive_ids_by_practice_id": {"5": [1]}},
                {"id": 11, "visit_motive_ids_by_practice_id": {"6": [1, 3]}},
                {"id": 12, "visit_motive_ids_by_practice_id": {"5": [3], "6": [1]}},
                {"id": 13, "visit_motive_ids_by_practice_id": {"5": [99]}},
            ],
        )
    )

    resolved = resolve(metadata, "5")

    assert resolved.agenda_ids == frozenset({10, 12})
    assert resolved.practice_ids == frozenset({5})
    assert resolved.visit_motive_ids == frozenset({1, 3})
    assert resolved.agenda_param == "10-12"
    assert resolved.visit_motive_param == "1-3"


def test_resolve_deduplicates_motives_across_agendas():
    metadata = BookingMetadata.from_payload(
        metadata_document(
            agendas=[
                {"id": 20, "visit_motive_ids_by_practice_id": {"5": [1]}},
                {"id": 21, "visit_motive_ids_by_practice_id": {"5": [1, 1]}},
            ]
        )
    )

    resolved = resolve(metadata, 5)

    assert resolved.visit_motive_param == "1"
    assert resolved.agenda_param == "20-21"


def test_resolve_with_custom_predicate():
    metadata = BookingMetadata.from_payload(
        metadata_document(
            motives=[{"id": 7, "name": "Moderna"}],
            agendas=[{"id": 10, "visit_motive_ids_by_practice_id": {"5": [7]}}],
        )
    )

    resolved = resolve(metadata, "5", name_predicate=lambda name: "moderna" in name.lower())

    assert resolved.visit_motive_ids == frozenset({7})


def test_resolve_with_non_numeric_hint_is_empty():
    metadata = BookingMetadata.from_payload(metadata_document())

    assert resolve(metadata, "abc").is_empty


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"data": {"agendas": []}},
        {"data": {"visit_motives": [{"id": 1}], "agendas": []}},
        {"data": {"visit_motives": [], "agendas": [{"id": 10}]}},
        {"data": {"visit_motives": [], "agendas": [{"id": 10, "visit_motive_ids_by_practice_id": {"x": [1]}}]}},
        [],
    ],
)
def test_malformed_metadata(payload):
    with pytest.raises(MalformedMetadata):
        BookingMetadata.from_payload(payload)


def test_metadata_display_name():
    metadata = BookingMetadata.from_payload(metadata_document())

    assert metadata.display_name == "Centre Louvre"


@pytest.mark.parametrize("hint", ["05", " 5", "5 ", "+5", "1_0", "٥", ""])
def test_resolve_requires_exact_practice_hint(hint):
    metadata = BookingMetadata.from_payload(
        metadata_document(
            agendas=[
                {"id": 10, "visit_motive_ids_by_practice_id": {"5": [1]}},
                {"id": 11, "visit_motive_ids_by_practice_id": {"10": [1]}},
            ]
        )
    )

    assert resolve(metadata, hint).is_empty
