from __future__ import annotations

import threading
from pathlib import Path

import pytest

from conftest import build_config, make_image, referenced_files, stored_files
from face_profiles.errors import (
    InvalidThreshold,
    NoImageProvided,
    ProfileNotFound,
    UnreadableImage,
    ValidationError,
)
from face_profiles.models import ImageUpload
from face_profiles.pipeline import FaceProfilePipeline


def _upload(seed: int) -> ImageUpload:
    return ImageUpload(data=make_image(seed), filename=f"face-{seed}.png")


def _assert_consistent(pipeline: FaceProfilePipeline) -> None:
    for profile in pipeline.list_profiles():
        assert len(profile.faces) == len(profile.descriptors)
    assert referenced_files(pipeline) == stored_files(pipeline.assets.faces_dir)


def test_create_alice(pipeline: FaceProfilePipeline):
    profile = pipeline.create_profile("Alice", "alice@x", None, [_upload(1)])

    assert len(profile.faces) == 1
    assert len(profile.descriptors) == 1
    assert profile.created_at == profile.updated_at
    assert profile.faces[0].name.endswith(".png")
    assert pipeline.get_profile(profile.id) is profile
    _assert_consistent(pipeline)


def test_replace_only_face_with_two_new(pipeline: FaceProfilePipeline):
    created = pipeline.create_profile("Alice", "alice@x", None, [_upload(1)])

    updated = pipeline.update_profile(
        created.id,
        faces_to_remove=[created.faces[0].name],
        new_images=[_upload(2), _upload(3)],
    )

    assert len(updated.faces) == 2
    assert len(updated.descriptors) == 2
    assert created.faces[0] not in updated.faces
    assert updated.updated_at > created.updated_at
    _assert_consistent(pipeline)


def test_create_validation_order(pipeline: FaceProfilePipeline, stub_extractor):
    with pytest.raises(NoImageProvided):
        pipeline.create_profile("", "", None, [])
    with pytest.raises(ValidationError):
        pipeline.create_profile("Alice", None, None, [_upload(1)])
    assert stub_extractor.calls == 0


def test_unreadable_image_aborts_without_side_effects(pipeline: FaceProfilePipeline):
    bad = ImageUpload(data=b"not-an-image", filename="x.jpg")

    with pytest.raises(UnreadableImage):
        pipeline.create_profile("Alice", "alice@x", None, [_upload(1), bad])

    assert pipeline.list_profiles() == []
    assert stored_files(pipeline.assets.faces_dir) == set()


def test_update_unknown_profile_skips_extraction(pipeline: FaceProfilePipeline, stub_extractor):
    with pytest.raises(ProfileNotFound):
        pipeline.update_profile("nope", new_images=[_upload(1)])
    assert stub_extractor.calls == 0


def test_update_with_unreadable_image_keeps_profile(pipeline: FaceProfilePipeline):
    created = pipeline.create_profile("Alice", "alice@x", None, [_upload(1)])

    with pytest.raises(UnreadableImage):
        pipeline.update_profile(
            created.id,
            faces_to_remove=[created.faces[0].name],
            new_images=[ImageUpload(data=b"not-an-image")],
        )

    assert pipeline.get_profile(created.id) is created
    _assert_consistent(pipeline)


def test_delete_unknown(pipeline: FaceProfilePipeline):
    pipeline.create_profile("Alice", "alice@x", None, [_upload(1)])

    with pytest.raises(ProfileNotFound):
        pipeline.delete_profile("nope")

    assert len(pipeline.list_profiles()) == 1


def test_recognize_empty_collection(pipeline: FaceProfilePipeline):
    result = pipeline.recognize(make_image(1))
    assert result.matched is False
    assert result.profile is None


def test_recognize_finds_registered_face(pipeline: FaceProfilePipeline):
    alice = pipeline.create_profile("Alice", "alice@x", None, [_upload(1), _upload(2)])
    pipeline.create_profile("Bob", "bob@x", None, [_upload(3)])
    files_before = stored_files(pipeline.assets.faces_dir)

    result = pipeline.recognize(make_image(2))

    assert result.matched is True
    assert result.profile.id == alice.id
    assert result.confidence == pytest.approx(1.0)
    # the query image is never stored
    assert stored_files(pipeline.assets.faces_dir) == files_before


def test_recognize_uses_assigned_descriptors(pipeline: FaceProfilePipeline, stub_extractor):
    near = stub_extractor.assign(b"near", [1, 0, 0, 0, 0, 0, 0, 0])
    far = stub_extractor.assign(b"far", [0, 1, 0, 0, 0, 0, 0, 0])
    query = stub_extractor.assign(b"query", [0.95, 0.05, 0, 0, 0, 0, 0, 0])

    pipeline.create_profile("Far", "far@x", None, [ImageUpload(far, "far.jpg")])
    expected = pipeline.create_profile("Near", "near@x", None, [ImageUpload(near, "near.jpg")])

    assert pipeline.recognize(query).profile.id == expected.id
    assert pipeline.recognize(query, threshold=1.0).matched is False

    hits = pipeline.search(query, threshold=0.0)
    assert [h.profile.name for h in hits] == ["Near", "Far"]


def test_recognize_rejects_invalid_threshold(pipeline: FaceProfilePipeline):
    with pytest.raises(InvalidThreshold):
        pipeline.recognize(make_image(1), threshold=2.0)


def test_stats(pipeline: FaceProfilePipeline):
    pipeline.create_profile("Alice", "alice@x", None, [_upload(1), _upload(2)])
    pipeline.create_profile("Bob", "bob@x", None, [_upload(3)])

    assert pipeline.stats() == {"total_profiles": 2, "total_faces": 3, "descriptor_size": 8}


def test_state_survives_restart(tmp_path: Path, stub_extractor):
    first = FaceProfilePipeline(config=build_config(tmp_path), extractor=stub_extractor)
    created = first.create_profile("Alice", "alice@x", "Busan", [_upload(1)])

    second = FaceProfilePipeline(config=build_config(tmp_path), extractor=stub_extractor)

    assert [p.id for p in second.list_profiles()] == [created.id]
    assert second.recognize(make_image(1)).profile.id == created.id


def test_mixed_operations_keep_assets_consistent(pipeline: FaceProfilePipeline):
    a = pipeline.create_profile("A", "a@x", None, [_upload(1), _upload(2)])
    b = pipeline.create_profile("B", "b@x", None, [_upload(3)])
    pipeline.update_profile(a.id, faces_to_remove=[a.faces[1].name], new_images=[_upload(4)])
    pipeline.update_profile(b.id, name="B2", faces_to_remove=[a.faces[0].name])
    pipeline.delete_profile(b.id)
    c = pipeline.create_profile("C", "c@x", None, [_upload(5)])
    pipeline.update_profile(c.id, faces_to_remove=[c.faces[0].name])

    _assert_consistent(pipeline)
    assert len(pipeline.get_profile(a.id).faces) == 2


def test_concurrent_creates(pipeline: FaceProfilePipeline):
    ids: list[str] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        try:
            profile = pipeline.create_profile(f"p{i}", f"p{i}@x", None, [_upload(i)])
        except BaseException as e:  # surfaced through the assertion below
            with lock:
                errors.append(e)
            return
        with lock:
            ids.append(profile.id)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(set(ids)) == 16
    assert {p.id for p in pipeline.list_profiles()} == set(ids)
    _assert_consistent(pipeline)
