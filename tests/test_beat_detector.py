import numpy as np
import pytest

from helpers import SR, click_track, quiet_config

from dancesage.beat_detector import (
    BeatDetector,
    BeatTrack,
    adaptive_threshold,
    estimate_bpm,
    onset_strength,
    pick_beats,
)


class TestEstimateBpm:
    def test_in_band_spacing(self):
        beats = [i * 0.3 for i in range(10)]
        assert estimate_bpm(beats) == pytest.approx(200.0, abs=0.01)

    def test_median_fallback(self):
        beats = [0.0, 0.5, 1.1, 1.65]  # intervals 0.5, 0.6, 0.55
        assert estimate_bpm(beats) == pytest.approx(60 / 0.55, rel=1e-6)
        assert round(estimate_bpm(beats), 1) == 109.1

    def test_only_in_band_intervals_are_averaged(self):
        beats = [0.0, 0.3, 0.6, 1.6, 1.92]  # 0.3, 0.3, 1.0, 0.32
        expected = 60 / np.mean([0.3, 0.3, 0.32])
        assert estimate_bpm(beats) == pytest.approx(expected, rel=1e-6)

    def test_even_fallback_uses_upper_middle(self):
        beats = [0.0, 0.5, 1.1, 1.8, 2.6]  # sorted 0.5, 0.6, 0.7, 0.8
        assert estimate_bpm(beats) == pytest.approx(60 / 0.7, rel=1e-6)

    def test_too_few_beats(self):
        assert estimate_bpm([]) == 0.0
        assert estimate_bpm([1.0]) == 0.0

    def test_custom_band(self):
        beats = [0.0, 0.5, 1.0]
        assert estimate_bpm(beats, tempo_band=(0.4, 0.6)) == pytest.approx(120.0)


class TestPickBeats:
    def test_cursor_gap_not_global_suppression(self):
        onset = np.zeros(60)
        onset[5] = 1.0
        onset[10] = 3.0   # stronger, but too close to the accepted beat at 5
        onset[40] = 1.0
        assert list(pick_beats(onset, threshold=0.5, min_gap_frames=23)) == [5, 40]

    def test_threshold_and_strict_maxima(self):
        onset = np.zeros(40)
        onset[5] = 0.3          # below threshold
        onset[15] = onset[16] = 2.0   # plateau, not strictly greater
        onset[30] = 2.0
        assert list(pick_beats(onset, threshold=0.5, min_gap_frames=1)) == [30]

    def test_edges_are_never_beats(self):
        onset = np.array([5.0, 0.0, 0.0, 0.0, 5.0])
        assert len(pick_beats(onset, threshold=0.1, min_gap_frames=1)) == 0

    def test_short_curve(self):
        assert len(pick_beats(np.array([0.0, 1.0]), 0.0, 1)) == 0


def test_adaptive_threshold():
    onset = np.array([0.0, 1.0, 0.0, 1.0])
    assert adaptive_threshold(onset) == pytest.approx(0.5 + 1.5 * 0.5)
    assert adaptive_threshold(np.empty(0)) == 0.0


class TestOnsetStrength:
    def test_shape_and_rectification(self):
        samples = click_track(count=3)
        onset = onset_strength(samples)
        assert len(onset) == 1 + (len(samples) - 2048) // 512
        assert onset[0] == 0.0
        assert np.all(onset >= 0)

    def test_rising_edge(self):
        samples = np.concatenate([np.zeros(4096), np.ones(8192)]).astype(np.float32)
        onset = onset_strength(samples)
        assert onset.max() > 0
        # Energy never falls, so every rise is kept
        assert onset.sum() == pytest.approx(1.0, abs=1e-5)

    def test_too_short(self):
        assert len(onset_strength(np.zeros(2048))) == 0
        assert len(onset_strength(np.zeros(100))) == 0


class TestBeatDetector:
    def test_click_track_tempo(self):
        detector = BeatDetector(quiet_config())
        track = detector.detect_beats_from_samples(click_track(), SR)
        assert len(track) >= 14
        assert track.bpm == pytest.approx(200.0, abs=6.0)
        assert abs(track.beats[0] - 0.5) < 0.06
        assert list(track.beats) == sorted(track.beats)
        gaps = np.diff(track.beats)
        assert np.all(gaps >= 23 * 512 / SR)

    def test_silence_has_no_beats(self):
        detector = BeatDetector(quiet_config())
        track = detector.detect_beats_from_samples(np.zeros(SR * 2, dtype=np.float32), SR)
        assert track.is_empty
        assert track.bpm == 0.0
        assert not track.bpm_available

    def test_missing_audio_degrades(self, tmp_path, monkeypatch):
        media = tmp_path / "silent.mp4"
        media.write_bytes(b"")
        detector = BeatDetector(quiet_config())
        monkeypatch.setattr(detector, "load_audio", lambda path: None)
        track = detector.detect_beats(media)
        assert track == BeatTrack()
        assert not detector.is_processing

    def test_undecodable_file_degrades(self, tmp_path):
        media = tmp_path / "broken.mp4"
        media.write_bytes(b"not really a video")
        track = BeatDetector(quiet_config()).detect_beats(media)
        assert track.is_empty
        assert track.bpm == 0.0

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            BeatDetector(quiet_config()).detect_beats(tmp_path / "nope.mp4")

    def test_min_gap_from_config(self):
        config = quiet_config()
        config.beats.min_beat_interval = 0.5
        track = BeatDetector(config).detect_beats_from_samples(click_track(), SR)
        assert np.all(np.diff(track.beats) >= 0.5 - 512 / SR)


def test_beat_track_dict_round_trip():
    track = BeatTrack(beats=(0.5, 0.8), bpm=200.0)
    assert BeatTrack.from_dict(track.to_dict()) == track
