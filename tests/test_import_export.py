import asyncio
from datetime import datetime, timezone

import pytest

from library import (
    ImportFormatError,
    build_export_payload,
    choose_by_updated_at,
    export_filename,
    merge_libraries,
    parse_import_payload,
)


def test_later_updated_at_wins():
    older = {"updated_at": "2024-01-01T00:00:00.000Z", "chapter_label": "5"}
    newer = {"updated_at": "2024-02-01T00:00:00.000Z", "chapter_label": "9"}

    assert choose_by_updated_at(older, newer) is newer
    assert choose_by_updated_at(newer, older) is newer


def test_tie_or_missing_timestamp_goes_to_incoming():
    existing = {"updated_at": "2024-01-01T00:00:00.000Z"}
    incoming = {"updated_at": "2024-01-01T00:00:00.000Z"}
    assert choose_by_updated_at(existing, incoming) is incoming

    assert choose_by_updated_at(existing, {"updated_at": None}) == {"updated_at": None}
    assert choose_by_updated_at({"updated_at": "garbage"}, incoming) is incoming


def test_merge_keeps_newer_chapter_and_fills_fields():
    existing = {
        "novelbin:a": {
            "novel_name": "Alpha",
            "cover_url": "https://example.com/a.jpg",
            "chapter_label": "20",
            "status": "reading",
            "genres": ["Action"],
            "updated_at": "2024-05-01T00:00:00.000Z",
        },
    }
    incoming = {
        "novelbin:a": {
            "novel_name": "Alpha",
            "chapter_label": "10",
            "status": "completed",
            "note": "from phone",
            "updated_at": "2024-04-01T00:00:00.000Z",
        },
        "ranobes:7": {"novel_name": "Seven", "status": "current", "updated_at": "2024-04-01T00:00:00.000Z"},
    }

    merged = merge_libraries(existing, incoming)

    entry = merged["novelbin:a"]
    assert entry["chapter_label"] == "20"
    assert entry["status"] == "reading"
    assert entry["cover_url"] == "https://example.com/a.jpg"
    assert entry["note"] == "from phone"
    assert entry["genres"] == ["Action"]
    assert merged["ranobes:7"]["status"] == "reading"


def test_merge_genres_prefer_incoming_list():
    existing = {"k": {"genres": ["Action"], "updated_at": "2024-05-01T00:00:00.000Z"}}
    incoming = {"k": {"genres": ["Drama"], "updated_at": "2024-01-01T00:00:00.000Z"}}
    assert merge_libraries(existing, incoming)["k"]["genres"] == ["Drama"]

    incoming = {"k": {"genres": "Drama", "updated_at": "2024-01-01T00:00:00.000Z"}}
    assert merge_libraries(existing, incoming)["k"]["genres"] == ["Action"]

    assert merge_libraries({"k": {}}, {"k": {}})["k"]["genres"] == []


def test_merge_with_empty_incoming_is_identity_after_normalization():
    existing = {"k": {"status": "reading", "genres": ["Action"]}}
    assert merge_libraries(existing, {}) == existing


def test_parse_wrapped_payload_sets_ids_and_skips_bad_entries():
    payload = {
        "app": "lnTracker",
        "version": 1,
        "exportedAt": "2024-06-01T00:00:00.000Z",
        "data": {
            "novelbin:a": {"id": "something-else", "novel_name": "Alpha"},
            "novelbin:b": "not an entry",
        },
    }

    library = parse_import_payload(payload)

    assert library == {"novelbin:a": {"id": "novelbin:a", "novel_name": "Alpha"}}


def test_parse_raw_library_map():
    library = parse_import_payload({"novelfull:x": {"novel_name": "X"}})
    assert library["novelfull:x"]["id"] == "novelfull:x"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        "text",
        {"app": "otherApp", "data": {}},
        {"app": "lnTracker", "version": 2, "data": {}},
        {"app": "lnTracker", "data": []},
    ],
)
def test_parse_rejects_unrecognized_payloads(payload):
    with pytest.raises(ImportFormatError):
        parse_import_payload(payload)


def test_export_payload_shape_and_filename():
    payload = build_export_payload({"k": {"novel_name": "K"}})

    assert payload["app"] == "lnTracker"
    assert payload["version"] == 1
    assert payload["exportedAt"].endswith("Z")
    assert payload["data"] == {"k": {"novel_name": "K"}}

    assert export_filename(datetime(2024, 6, 1, tzinfo=timezone.utc)) == "lnTracker-export-2024-06-01.json"


def test_export_then_merge_import_restores_library(library, store):
    original = {
        "novelbin:a": {"id": "novelbin:a", "novel_name": "Alpha", "status": "dropped",
                       "genres": ["Action"], "updated_at": "2024-05-01T00:00:00.000Z"},
    }
    asyncio.run(store.set({"lnTracker.library": original}))
    exported = asyncio.run(library.export_library())

    asyncio.run(store.set({"lnTracker.library": {}}))
    result = asyncio.run(library.import_library(exported, mode="merge"))

    assert result == original


def test_replace_import_overwrites_library(library, store):
    asyncio.run(store.set({"lnTracker.library": {"novelbin:old": {"status": "reading"}}}))

    result = asyncio.run(library.import_library({"ranobes:1": {"status": "completed"}}, mode="replace"))

    assert set(result) == {"ranobes:1"}
    assert result["ranobes:1"]["status"] == "finished"
    assert asyncio.run(library.load()) == result


def test_rejected_import_writes_nothing(library, store):
    before = {"novelbin:a": {"status": "reading"}}
    asyncio.run(store.set({"lnTracker.library": before}))

    with pytest.raises(ImportFormatError):
        asyncio.run(library.import_library({"app": "lnTracker", "version": 3, "data": {}}))
    with pytest.raises(ImportFormatError):
        asyncio.run(library.import_library({}, mode="append"))

    assert asyncio.run(store.get("lnTracker.library"))["lnTracker.library"] == before


def test_export_file_without_data_is_rejected_and_library_kept(library, store):
    before = {"novelbin:a": {"id": "novelbin:a", "novel_name": "Alpha", "status": "reading"}}
    asyncio.run(store.set({"lnTracker.library": before}))

    with pytest.raises(ImportFormatError):
        asyncio.run(library.import_library(
            {"app": "lnTracker", "version": 1, "exportedAt": "2024-01-01T00:00:00Z"},
            mode="replace",
        ))
    with pytest.raises(ImportFormatError):
        asyncio.run(library.import_library({"data": {"novelbin:b": {}}}, mode="replace"))

    assert asyncio.run(store.get("lnTracker.library"))["lnTracker.library"] == before


def test_raw_map_without_any_entry_object_is_rejected():
    with pytest.raises(ImportFormatError):
        parse_import_payload({"exportedAt": "2024-01-01T00:00:00Z", "version": 1})

    assert parse_import_payload({}) == {}


def test_imported_scalar_fields_become_strings():
    library = parse_import_payload({
        "novelbin:b": {
            "novel_name": "Beta",
            "chapter_label": 12,
            "updated_at": 1717200000000,
            "cover_url": {"src": "/b.jpg"},
            "genres": ["Drama"],
        },
    })

    entry = library["novelbin:b"]
    assert entry["chapter_label"] == "12"
    assert entry["updated_at"] == "1717200000000"
    assert entry["cover_url"] is None
    assert entry["genres"] == ["Drama"]


def test_legacy_numeric_timestamp_can_still_be_listed(library, store):
    asyncio.run(store.set({"lnTracker.library": {
        "novelbin:a": {"novel_name": "Alpha", "status": "reading", "updated_at": "2024-05-01T00:00:00.000Z"},
    }}))

    asyncio.run(library.import_library({
        "novelbin:b": {"novel_name": "Beta", "status": "current", "updated_at": 1717200000000},
    }))
    items, total, _ = asyncio.run(library.list_entries())

    assert total == 2
    assert {key for key, _ in items} == {"novelbin:a", "novelbin:b"}


def test_merge_does_not_modify_its_inputs():
    existing = {"k": {"status": "completed", "updated_at": "2024-05-01T00:00:00.000Z"}}
    incoming = {
        "k": {"status": "current", "updated_at": "2024-01-01T00:00:00.000Z"},
        "n": {"status": "onhold"},
    }

    merged = merge_libraries(existing, incoming)

    assert merged["k"]["status"] == "finished"
    assert merged["n"]["status"] == "on-hold"
    assert existing["k"]["status"] == "completed"
    assert incoming["k"]["status"] == "current"
    assert incoming["n"]["status"] == "onhold"
