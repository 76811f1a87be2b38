import numpy as np
import pytest
from conftest import render_capture

from procamgraycode.capture import (
    CaptureSequencer,
    FrameSequence,
    FrameStore,
    frame_filename,
    load_frames,
)
from procamgraycode.errors import CaptureError, SequenceAlignmentError
from procamgraycode.graycode import generate


def test_one_frame_per_pattern_in_order(scene):
    patterns = generate(8, 4, 5, 40)
    frames = CaptureSequencer(scene, scene, settle_ms=250).run(patterns)

    assert len(frames) == len(patterns)
    assert scene.captures == len(patterns)
    assert scene.waits == [250] * len(patterns)
    for shown, expected in zip(scene.shown, patterns):
        assert shown is expected
    for frame, expected in zip(frames, render_capture(patterns, scene.proj_x, scene.proj_y)):
        np.testing.assert_array_equal(frame, expected)


def test_camera_failure_aborts_run(scene):
    patterns = generate(8, 4, 5, 40)
    scene.fail_after = 5
    with pytest.raises(CaptureError):
        CaptureSequencer(scene, scene, settle_ms=0).run(patterns)


def test_frames_are_persisted(scene, tmp_path):
    patterns = generate(8, 4, 5, 40)
    store = FrameStore(tmp_path / "captured")
    frames = CaptureSequencer(scene, scene, settle_ms=0, frame_store=store).run(patterns)

    names = sorted(p.name for p in (tmp_path / "captured").iterdir())
    assert names == [frame_filename(i) for i in range(len(patterns))]
    assert names[0] == "cam_00.png"

    reloaded = load_frames(tmp_path / "captured")
    assert len(reloaded) == len(frames)
    for a, b in zip(reloaded, frames):
        np.testing.assert_array_equal(a, b)


def test_load_frames_requires_contiguous_numbering(tmp_path):
    store = FrameStore(tmp_path)
    store.save(0, np.zeros((4, 4), np.uint8))
    store.save(2, np.zeros((4, 4), np.uint8))
    with pytest.raises(SequenceAlignmentError):
        load_frames(tmp_path)


def test_load_frames_empty_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_frames(tmp_path)


def test_preview_runs_until_key(scene):
    patterns = generate(8, 4, 5, 40)
    scene.keys_after = 4
    shown = CaptureSequencer(scene, scene, settle_ms=0).preview(patterns)

    assert shown == 4
    assert scene.previews == 4
    assert scene.shown[0] is patterns[patterns.preview_index]


def test_negative_settle_rejected(scene):
    with pytest.raises(ValueError):
        CaptureSequencer(scene, scene, settle_ms=-1)


def test_frame_sequence_is_immutable():
    frames = FrameSequence.from_frames([np.zeros((2, 2), np.uint8)] * 3)
    with pytest.raises(ValueError):
        frames[0][0, 0] = 1
    assert frames.black() is frames[1]
    assert frames.white() is frames[2]
