from __future__ import annotations

import threading
from pathlib import Path

import pytest

from face_profiles.errors import AssetNotFound, StorageError
from face_profiles.models import AssetRef
from face_profiles.storage.assets import FaceAssetManager


def test_store_writes_unique_files(tmp_path: Path):
    assets = FaceAssetManager(tmp_path / "faces")

    a = assets.store("p1", b"one", ".png")
    b = assets.store("p1", b"two", ".png")

    assert a != b
    assert a.name.endswith(".png")
    assert assets.path_for(a).read_bytes() == b"one"
    assert assets.path_for(b).read_bytes() == b"two"
    assert assets.url_for(a) == f"/faces/{a.name}"


def test_unknown_suffix_falls_back_to_jpg(tmp_path: Path):
    assets = FaceAssetManager(tmp_path)
    assert assets.store("p1", b"x", ".exe").name.endswith(".jpg")


def test_concurrent_stores_never_overwrite(tmp_path: Path):
    assets = FaceAssetManager(tmp_path)
    refs: list[AssetRef] = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        ref = assets.store(f"p{i}", f"payload-{i}".encode(), ".jpg")
        with lock:
            refs.append(ref)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(32)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({r.name for r in refs}) == 32
    payloads = {assets.path_for(r).read_bytes() for r in refs}
    assert payloads == {f"payload-{i}".encode() for i in range(32)}


def test_name_collision_retries(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    assets = FaceAssetManager(tmp_path)
    (tmp_path / "taken.jpg").write_bytes(b"existing")
    names = iter(["taken.jpg", "free.jpg"])
    monkeypatch.setattr(assets, "_new_name", lambda suffix: next(names))

    ref = assets.store("p1", b"new", ".jpg")

    assert ref.name == "free.jpg"
    assert (tmp_path / "taken.jpg").read_bytes() == b"existing"


def test_store_gives_up_after_repeated_collisions(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    assets = FaceAssetManager(tmp_path)
    (tmp_path / "taken.jpg").write_bytes(b"existing")
    monkeypatch.setattr(assets, "_new_name", lambda suffix: "taken.jpg")

    with pytest.raises(StorageError):
        assets.store("p1", b"new", ".jpg")


def test_remove_and_discard_are_idempotent(tmp_path: Path):
    assets = FaceAssetManager(tmp_path)
    ref = assets.store("p1", b"x", ".jpg")

    assets.remove(ref)
    assert not assets.exists(ref)

    with pytest.raises(AssetNotFound):
        assets.remove(ref)
    assert assets.discard(ref) is False


def test_discard_all_counts_removed(tmp_path: Path):
    assets = FaceAssetManager(tmp_path)
    refs = [assets.store("p1", b"x", ".jpg") for _ in range(3)]
    assets.remove(refs[1])

    assert assets.discard_all(refs) == 2
    assert assets.stored_refs() == set()


@pytest.mark.parametrize("name", ["../escape.jpg", "a/b.jpg", "..", ""])
def test_path_traversal_is_rejected(tmp_path: Path, name: str):
    assets = FaceAssetManager(tmp_path)
    with pytest.raises(AssetNotFound):
        assets.path_for(AssetRef(name))
    assert assets.discard(AssetRef(name)) is False


def test_audit_reports_orphans_and_dangling(tmp_path: Path):
    assets = FaceAssetManager(tmp_path)
    kept = assets.store("p1", b"x", ".jpg")
    orphan = assets.store("p1", b"y", ".jpg")
    missing = AssetRef("missing.jpg")

    orphans, dangling = assets.audit([kept, missing])

    assert orphans == [orphan]
    assert dangling == [missing]
