import asyncio

from conftest import loaded_store, write_csv

from ched_chat.records.ingest import normalize_row, read_records
from ched_chat.records.store import RecordStore, match_score
from ched_chat.schemas import Institution


def test_normalize_row_maps_ched_headers():
    record = normalize_row(
        {
            "INSTITUTION NAME": " Saint Louis University ",
            "INSTITUTION TYPE": "Private HEI",
            "MUNICIPALITY": "Baguio City",
            "PROVINCE": "Benguet",
            "REGION": "CAR",
            "WEBSITE": "slu.edu.ph",
            "TELEPHONE NO": "",
        }
    )
    assert record == Institution(
        name="Saint Louis University",
        type="Private HEI",
        city="Baguio City",
        province="Benguet",
        region="CAR",
        website="slu.edu.ph",
        contact=None,
    )


def test_normalize_row_accepts_alternate_header_variants():
    record = normalize_row({"Name": "Iloilo Science College", "City": "Iloilo City", "Telephone": "123"})
    assert record.name == "Iloilo Science College"
    assert record.city == "Iloilo City"
    assert record.contact == "123"
    assert record.region is None


def test_normalize_row_skips_rows_without_name():
    assert normalize_row({"INSTITUTION NAME": "  ", "MUNICIPALITY": "Quezon City"}) is None


def test_read_records_keeps_file_order_and_drops_nameless_rows(sample_csv):
    names = [record.name for record in read_records(sample_csv)]
    assert names == [
        "University of the Philippines Diliman",
        "Saint Louis University",
        "Ateneo de Manila University",
    ]


def test_read_records_trims_header_whitespace(tmp_path):
    path = write_csv(
        tmp_path / "padded.csv",
        [{" Name ": "Cebu Institute", " City ": "Cebu City"}],
        headers=[" Name ", " City "],
    )
    assert read_records(path) == [Institution(name="Cebu Institute", city="Cebu City")]


def test_store_is_not_ready_before_load():
    store = RecordStore()
    assert store.is_ready() is False
    assert store.records() == ()
    assert store.search("university") == []
    assert store.match("quezon city") == []


def test_store_readiness_flips_once_and_stays(sample_csv, tmp_path):
    store = loaded_store(sample_csv)
    assert store.is_ready() is True
    assert store.count() == 3

    # A later load never replaces or un-publishes the sequence.
    assert asyncio.run(store.load(tmp_path / "missing.csv")) is True
    assert store.is_ready() is True
    assert store.count() == 3


def test_store_load_failure_keeps_store_not_ready(tmp_path):
    store = RecordStore()
    assert asyncio.run(store.load(tmp_path / "missing.csv")) is False
    assert store.is_ready() is False
    assert store.count() == 0


def test_search_is_case_insensitive_substring_in_store_order(sample_store):
    names = [record.name for record in sample_store.search("UNIVERSITY")]
    assert names == [
        "University of the Philippines Diliman",
        "Saint Louis University",
        "Ateneo de Manila University",
    ]
    assert [r.name for r in sample_store.search("baguio")] == ["Saint Louis University"]


def test_search_can_be_limited_to_name_field(sample_store):
    assert sample_store.search("quezon", fields=("name",)) == []
    assert len(sample_store.search("quezon")) == 2


def test_match_score_counts_fields_mentioned_in_text():
    record = Institution(name="Saint Louis University", city="Baguio City", region="CAR")
    assert match_score(record, "is saint louis university in baguio city?") == 2
    assert match_score(record, "tell me about car schools") == 1
    assert match_score(record, "scarce options") == 0


def test_match_score_counts_text_contained_in_field():
    record = Institution(name="Saint Louis University", city="Baguio City", region="CAR")
    assert match_score(record, "baguio") == 1
    assert match_score(record, "  Louis! ") == 1
    assert match_score(record, "university") == 1
    assert match_score(record, "ca") == 0


def test_match_ignores_very_short_values():
    record = Institution(name="X", city="QC", region="I")
    assert match_score(record, "i want x in qc") == 0


def test_match_returns_store_order(sample_store):
    names = [record.name for record in sample_store.match("schools in quezon city please")]
    assert names == ["University of the Philippines Diliman", "Ateneo de Manila University"]


def test_match_single_keyword(sample_store):
    assert [r.name for r in sample_store.match("baguio")] == ["Saint Louis University"]
    assert [r.name for r in sample_store.match("diliman")] == ["University of the Philippines Diliman"]
    assert sample_store.match("hi") == []
