import pytest
from datetime import datetime
from pathlib import Path

from photo_ingest import config
from photo_ingest.cancel import CancelToken
from photo_ingest.catalog import Catalog
from photo_ingest.classifier import Reconciler
from photo_ingest.exceptions import FileCompareError, FileOperationError
from photo_ingest.models import Record
from photo_ingest.organization.mover import FileMover

from conftest import write_file

DT = datetime(2024, 1, 2, 10, 0, 0)


def _scanned(root: Path, rel: str, data: bytes, hash_value="h1", camera="Canon EOS", ts=DT) -> Record:
    path = write_file(root / rel, data)
    return Record(hash=hash_value, paths=[str(path)], camera=camera, timestamp=ts, rel_path=rel)


@pytest.fixture
def catalog():
    return Catalog()


@pytest.fixture
def reconciler(catalog, layout):
    return Reconciler(catalog, layout)


def test_identical_batch_registers_one_and_trashes_rest(reconciler, catalog, layout):
    group = [_scanned(layout.incoming, name, b"same bytes") for name in ("a.jpg", "b/a.jpg", "c.jpg")]

    reconciler.classify_group("h1", group)

    dest = layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg"
    assert dest.read_bytes() == b"same bytes"
    assert (layout.trash / "b" / "a.jpg").exists()
    assert (layout.trash / "c.jpg").exists()
    assert not any(layout.incoming.rglob("*.jpg"))

    rec = catalog.lookup("h1")
    assert rec.paths == [str(dest)]
    assert rec.sorted is False
    assert len(catalog) == 1
    assert reconciler.stats.registered == 1
    assert reconciler.stats.removed == 2


def test_new_registration_does_not_mark_target_dir(reconciler, catalog, layout):
    first = _scanned(layout.incoming, "a.jpg", b"first", hash_value="h1")
    second = _scanned(layout.incoming, "b.jpg", b"second", hash_value="h2")

    reconciler.classify_group("h1", [first])
    reconciler.classify_group("h2", [second])

    folder = layout.storage / "Canon EOS" / "2024-01-02"
    assert (folder / "10-00-00.jpg").read_bytes() == b"first"
    assert (folder / "10-00-00-1.jpg").read_bytes() == b"second"
    assert not catalog.by_target_dir
    assert reconciler.stats.registered == 2


def test_hash_conflict_within_batch(reconciler, catalog, layout):
    group = [
        _scanned(layout.incoming, "x/a.jpg", b"version one"),
        _scanned(layout.incoming, "y/a.jpg", b"version two"),
    ]

    reconciler.classify_group("h1", group)

    assert (layout.conflicts / "x" / "a.jpg").read_bytes() == b"version one"
    assert (layout.conflicts / "y" / "a.jpg").read_bytes() == b"version two"
    assert len(catalog) == 0
    assert reconciler.stats.conflicts == 2


def test_duplicate_of_known_content(reconciler, catalog, layout):
    stored = write_file(layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg", b"known")
    catalog.register(Record(hash="h1", paths=[str(stored)], camera="Canon EOS", timestamp=DT))

    reconciler.classify_group("h1", [_scanned(layout.incoming, "dcim/a.jpg", b"known")])

    assert (layout.trash / "dcim" / "a.jpg").read_bytes() == b"known"
    assert catalog.lookup("h1").paths == [str(stored)]
    assert reconciler.stats.removed == 1
    assert [a.kind for a in reconciler.actions] == ["trash"]


def test_hash_conflict_with_catalog_leaves_record_untouched(reconciler, catalog, layout):
    stored = write_file(layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg", b"stored bytes")
    original = Record(hash="h1", paths=[str(stored)], camera="Canon EOS", timestamp=DT)
    catalog.register(original)

    reconciler.classify_group("h1", [_scanned(layout.incoming, "a.jpg", b"other bytes", camera="Sony A7")])

    assert (layout.conflicts / "a.jpg").read_bytes() == b"other bytes"
    rec = catalog.lookup("h1")
    assert rec.paths == [str(stored)]
    assert rec.camera == "Canon EOS"
    assert stored.read_bytes() == b"stored bytes"
    assert reconciler.stats.conflicts == 1


def test_directory_collision_goes_to_duplicates(reconciler, catalog, layout):
    curated = _scanned(layout.sorted, "holiday/beach.jpg", b"curated", hash_value="s1")
    reconciler.reconcile_sorted({"s1": [curated]})

    reconciler.classify_group("h2", [_scanned(layout.incoming, "cam/IMG_2.jpg", b"new content", hash_value="h2")])

    assert (layout.duplicates / "cam" / "IMG_2.jpg").read_bytes() == b"new content"
    assert "h2" not in catalog
    assert not layout.storage.exists()
    assert reconciler.stats.duplicates == 1


def test_unclassifiable_files(reconciler, catalog, layout):
    group = [
        _scanned(layout.incoming, "docs/readme.txt", b"text", hash_value=config.EMPTY_HASH),
        _scanned(layout.incoming, "x.zip", b"zip", hash_value=config.EMPTY_HASH),
    ]

    reconciler.classify_group(config.EMPTY_HASH, group)

    assert (layout.no_media / "docs" / "readme.txt").exists()
    assert (layout.no_media / "x.zip").exists()
    assert len(catalog) == 0
    assert reconciler.stats.unclassifiable == 2


def test_failed_move_leaves_file_and_registers_nothing(catalog, layout):
    class FailingMover(FileMover):
        def move(self, src, dest):
            raise FileOperationError(f"move {src} -> {dest}: read-only filesystem")

    reconciler = Reconciler(catalog, layout, mover=FailingMover())
    rec = _scanned(layout.incoming, "a.jpg", b"data")

    reconciler.classify_group("h1", [rec])

    assert Path(rec.paths[0]).exists()
    assert "h1" not in catalog
    assert reconciler.stats.errors == 1
    (action,) = reconciler.actions
    assert action.kind == "new"
    assert not action.done
    assert "read-only" in action.note


def test_compare_error_skips_group(reconciler, catalog, layout):
    catalog.register(Record(hash="h1", paths=[str(layout.storage / "vanished.jpg")], camera="Canon EOS", timestamp=DT))
    rec = _scanned(layout.incoming, "a.jpg", b"data")

    reconciler.classify_group("h1", [rec])

    assert Path(rec.paths[0]).exists()
    assert reconciler.stats.errors == 1
    assert not reconciler.actions


def test_sorted_registration(reconciler, catalog, layout):
    rec = _scanned(layout.sorted, "2024/beach.jpg", b"curated", hash_value="s1")

    assert reconciler.reconcile_sorted({"s1": [rec]})

    stored = catalog.lookup("s1")
    assert stored.paths == [rec.paths[0]]
    assert stored.sorted is True
    assert rec.paths[0] in catalog.sorted_paths
    assert catalog.index_target_dir("Canon EOS/2024-01-02") == {"s1"}
    # Sorted files are never moved
    assert Path(rec.paths[0]).exists()
    assert reconciler.stats.sorted_registered == 1


def test_sorted_duplicates_merge(reconciler, catalog, layout):
    a = _scanned(layout.sorted, "a.jpg", b"same", hash_value="s1")
    b = _scanned(layout.sorted, "copy/a.jpg", b"same", hash_value="s1")

    reconciler.reconcile_sorted({"s1": [a, b]})

    assert catalog.lookup("s1").paths == [a.paths[0], b.paths[0]]
    assert catalog.sorted_paths == {a.paths[0], b.paths[0]}
    assert reconciler.stats.sorted_duplicates == 1


def test_sorted_duplicates_warn_policy(catalog, layout):
    reconciler = Reconciler(catalog, layout, sorted_duplicate_policy='warn')
    a = _scanned(layout.sorted, "a.jpg", b"same", hash_value="s1")
    b = _scanned(layout.sorted, "copy/a.jpg", b"same", hash_value="s1")

    reconciler.reconcile_sorted({"s1": [a, b]})

    assert catalog.lookup("s1").paths == [a.paths[0]]
    assert b.paths[0] not in catalog.sorted_paths
    assert reconciler.stats.sorted_duplicates == 1


def test_sorted_copy_of_stored_content_is_merged(reconciler, catalog, layout):
    stored = write_file(layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg", b"photo")
    catalog.register(Record(hash="h1", paths=[str(stored)], camera="Canon EOS", timestamp=DT))
    curated = _scanned(layout.sorted, "best/photo.jpg", b"photo", hash_value="h1")

    reconciler.reconcile_sorted({"h1": [curated]})

    rec = catalog.lookup("h1")
    assert rec.paths == [str(stored), curated.paths[0]]
    assert rec.sorted is True
    assert catalog.is_target_dir_marked("Canon EOS/2024-01-02")


def test_sorted_hash_conflict(reconciler, catalog, layout):
    a = _scanned(layout.sorted, "a.jpg", b"first", hash_value="s1")
    b = _scanned(layout.sorted, "b.jpg", b"second", hash_value="s1")

    reconciler.reconcile_sorted({"s1": [a, b]})

    assert catalog.lookup("s1").paths == [a.paths[0]]
    assert Path(b.paths[0]).exists()
    assert reconciler.stats.sorted_conflicts == 1
    assert not reconciler.actions


def test_sorted_non_media_is_ignored(reconciler, catalog, layout):
    rec = _scanned(layout.sorted, "notes.txt", b"text", hash_value=config.EMPTY_HASH)

    reconciler.reconcile_sorted({config.EMPTY_HASH: [rec]})

    assert len(catalog) == 0
    assert Path(rec.paths[0]).exists()


def test_cancelled_before_group(catalog, layout):
    token = CancelToken()
    token.cancel()
    reconciler = Reconciler(catalog, layout, cancel=token)
    rec = _scanned(layout.incoming, "a.jpg", b"data")

    assert reconciler.classify_incoming({"h1": [rec]}) is False
    assert reconciler.reconcile_sorted({}) is True
    assert Path(rec.paths[0]).exists()
    assert len(catalog) == 0


def test_unknown_policy_rejected(catalog, layout):
    with pytest.raises(ValueError):
        Reconciler(catalog, layout, sorted_duplicate_policy='auto')


def test_sorted_file_marks_dir_when_compare_fails(reconciler, catalog, layout, monkeypatch):
    stored = write_file(layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg", b"photo")
    catalog.register(Record(hash="h1", paths=[str(stored)], camera="Canon EOS", timestamp=DT))
    curated = _scanned(layout.sorted, "album/p.jpg", b"photo", hash_value="h1")

    def unreadable(a, b, chunk_size=None):
        raise FileCompareError(f"compare {a} {b}: permission denied")

    monkeypatch.setattr("photo_ingest.classifier.files_equal", unreadable)
    reconciler.reconcile_sorted({"h1": [curated]})

    assert reconciler.stats.errors == 1
    assert catalog.is_target_dir_marked("Canon EOS/2024-01-02")

    reconciler.classify_group("h2", [_scanned(layout.incoming, "IMG_2.jpg", b"other", hash_value="h2")])

    assert "h2" not in catalog
    assert reconciler.stats.duplicates == 1
    assert (layout.duplicates / "IMG_2.jpg").exists()


def test_sorted_file_takes_over_record_with_no_copy_left(reconciler, catalog, layout):
    gone = layout.storage / "Canon EOS" / "2024-01-02" / "10-00-00.jpg"
    catalog.register(Record(hash="h1", paths=[str(gone)], camera="Canon EOS", timestamp=DT))
    curated = _scanned(layout.sorted, "album/p.jpg", b"photo", hash_value="h1")

    reconciler.reconcile_sorted({"h1": [curated]})

    rec = catalog.lookup("h1")
    assert rec.paths == [curated.paths[0]]
    assert rec.sorted is True
    assert catalog.sorted_paths == {curated.paths[0]}
    assert catalog.is_target_dir_marked("Canon EOS/2024-01-02")
    assert reconciler.stats.errors == 0

    # Unrelated content for the same camera and day is held for review
    reconciler.classify_group("h2", [_scanned(layout.incoming, "IMG_2.jpg", b"other", hash_value="h2")])
    assert "h2" not in catalog
    assert reconciler.stats.duplicates == 1
