"""
================================================================================
DANCESAGE - MAIN RUNNER
================================================================================
Main entry point for dance pose tracking and beat counting.

Usage:
    # Analyze a single video (poses + beats)
    python main.py --video path/to/salsa.mp4

    # Analyze all videos in a directory
    python main.py --input-dir ./videos/

    # Solo styling view with the MediaPipe backend
    python main.py --video styling.mp4 --backend mediapipe --styling

    # Save the tracked timeline as a named recording
    python main.py --video salsa.mp4 --save "Cross body lead"

    # Manage saved recordings
    python main.py --list
    python main.py --delete <recording-id>
================================================================================
"""

import argparse
import json
import time
from pathlib import Path
from typing import List, Union, Optional

from configs.config import (
    DanceSageConfig,
    get_fast_config,
    get_accurate_config,
    get_live_config,
)
from dancesage.analysis import DanceAnalyzer, DanceAnalysis
from dancesage.beat_detector import BeatTrack
from dancesage.frame_pipeline import PipelineOutcome
from dancesage.recordings import RecordingStore
from dancesage.video_processor import VideoProcessor


# ==============================================================================
# MODEL DOWNLOAD CHECK
# ==============================================================================

def check_model_exists(model_name: str) -> bool:
    """Check if model exists, print helpful message if not."""
    model_path = Path(model_name)

    if not model_path.exists():
        print("\n" + "=" * 60)
        print("MODEL DOWNLOAD REQUIRED")
        print("=" * 60)
        print(f"  Model '{model_name}' not found locally.")
        print("  Ultralytics will now download it automatically.")
        print("=" * 60 + "\n")
        return False
    return True


# ==============================================================================
# MAIN PIPELINE CLASS
# ==============================================================================

class DanceAnalysisRunner:
    """
    Runs analysis over videos and writes keypoints + beats to disk.

    Example:
        >>> runner = DanceAnalysisRunner()
        >>> runner.process_video("salsa.mp4")
    """

    def __init__(self, config: Optional[DanceSageConfig] = None):
        self.config = config or DanceSageConfig()

        # Lazy-loaded components
        self._analyzer = None
        self._video_processor = None
        self._store = None

        self.config.output.setup_directories()

    def close(self) -> None:
        """Release the landmark model if one was loaded."""
        if self._analyzer is not None:
            self._analyzer.close()

    def __enter__(self) -> "DanceAnalysisRunner":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def analyzer(self) -> DanceAnalyzer:
        if self._analyzer is None:
            if self.config.landmarks.backend == "yolo":
                check_model_exists(self.config.landmarks.model_name)
            self._analyzer = DanceAnalyzer(self.config)
        return self._analyzer

    @property
    def video_processor(self) -> VideoProcessor:
        if self._video_processor is None:
            self._video_processor = VideoProcessor(self.config)
        return self._video_processor

    @property
    def store(self) -> RecordingStore:
        if self._store is None:
            self._store = RecordingStore(self.config.output.recordings_dir)
        return self._store

    def process_video(
        self,
        video_path: Union[str, Path],
        partner_mode: bool = True,
        save_as: Optional[str] = None,
    ) -> dict:
        """
        Analyze a single video.

        Args:
            video_path: Path to input video
            partner_mode: Keep every tracked dancer (False = slot 0 only)
            save_as: Store the timeline as a recording under this name

        Returns:
            Dictionary with processing results and statistics
        """
        video_path = Path(video_path)
        start_time = time.time()

        print("\n" + "=" * 60)
        print(f"PROCESSING: {video_path.name}")
        print("=" * 60)

        # -----------------------------------------------------------------------
        # Step 1: Poses and beats (run concurrently)
        # -----------------------------------------------------------------------
        print("\n[Step 1/3] Tracking poses and detecting beats...")
        analysis = self.analyzer.analyze(
            video_path, partner_mode=partner_mode, on_beats=self._report_tempo
        )
        outcome = analysis.pipeline.outcome

        # -----------------------------------------------------------------------
        # Step 2: Save keypoint + beat data
        # -----------------------------------------------------------------------
        keypoints_path = None
        if analysis.timeline is not None and self.config.output.save_keypoints:
            print("\n[Step 2/3] Saving keypoint data...")
            keypoints_path = (
                self.config.output.output_dir
                / "keypoints"
                / f"{video_path.stem}_keypoints.json"
            )
            self._save_keypoints(analysis, keypoints_path)
            print(f"  ✓ Saved: {keypoints_path}")
        else:
            print("\n[Step 2/3] No timeline to save")

        # -----------------------------------------------------------------------
        # Step 3: Store as recording
        # -----------------------------------------------------------------------
        recording_id = None
        if save_as and outcome == PipelineOutcome.COMPLETED:
            print("\n[Step 3/3] Saving recording...")
            recording = self.store.save(save_as, analysis.timeline)
            recording_id = recording.id
            print(f"  ✓ Saved recording '{recording.name}' ({recording.id})")
        else:
            print("\n[Step 3/3] Skipping recording")

        elapsed = time.time() - start_time
        num_frames = len(analysis.timeline) if analysis.timeline is not None else 0

        result_summary = {
            "video": str(video_path),
            "outcome": outcome.value,
            "message": analysis.pipeline.message,
            "num_frames": num_frames,
            "sampling_fps": analysis.fps,
            "bpm": analysis.beats.bpm,
            "num_beats": len(analysis.beats),
            "processing_time_seconds": elapsed,
            "keypoints_path": str(keypoints_path) if keypoints_path else None,
            "recording_id": recording_id,
        }

        print("\n" + "=" * 60)
        print("PROCESSING COMPLETE" if outcome == PipelineOutcome.COMPLETED else outcome.value.upper())
        print("=" * 60)
        if analysis.pipeline.message:
            print(f"  {analysis.pipeline.message}")
        print(f"  Frames: {num_frames}")
        print(f"  Time: {elapsed:.1f}s")
        print("=" * 60 + "\n")

        return result_summary

    @staticmethod
    def _report_tempo(beats: BeatTrack) -> None:
        # Called from the beat worker while poses are still being tracked
        if beats.bpm_available:
            print(f"  🎵 {int(beats.bpm)} BPM ({len(beats)} beats)")
        else:
            print("  ⚠ Tempo unavailable")

    def _save_keypoints(self, analysis: DanceAnalysis, output_path: Path) -> None:
        """Save keypoint and beat data to JSON file."""
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "format": "coco",
            "num_keypoints": 17,
            "keypoint_names": list(self.config.normalizer.joint_names),
            "backend": self.config.landmarks.backend,
            "fps": analysis.fps,
            "beats": analysis.beats.to_dict(),
            "frames": [f.to_dict() for f in analysis.timeline],
        }

        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)

    def process_all_videos(self, input_dir: Optional[Union[str, Path]] = None, **kwargs) -> List[dict]:
        """Process all videos in a directory."""
        videos = self.video_processor.find_videos(input_dir)

        if not videos:
            print("No videos found")
            return []

        all_results = []
        for i, video_path in enumerate(videos, 1):
            print(f"\n[Video {i}/{len(videos)}]")
            all_results.append(self.process_video(video_path, **kwargs))

        return all_results

    def list_recordings(self) -> None:
        recordings = self.store.list()
        if not recordings:
            print("No recordings yet")
            return
        for rec in recordings:
            print(f"  {rec.id}  {rec.name:<30} {rec.frame_count:>6} frames  "
                  f"{rec.created_at:%Y-%m-%d %H:%M}")

    def delete_recording(self, recording_id: str) -> bool:
        deleted = self.store.delete(recording_id)
        print(f"✓ Deleted {recording_id}" if deleted else f"⚠ No recording {recording_id}")
        return deleted


# ==============================================================================
# COMMAND LINE INTERFACE
# ==============================================================================

def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="DanceSage pose tracking and beat counting",
    )

    parser.add_argument("--video", "-v", type=str, help="Path to video file")
    parser.add_argument("--input-dir", "-i", type=str, help="Directory with videos")
    parser.add_argument("--output-dir", "-o", type=str, help="Output directory")
    parser.add_argument(
        "--preset", "-p",
        choices=["default", "fast", "accurate", "live"],
        default="default",
        help="Configuration preset"
    )
    parser.add_argument("--backend", choices=["yolo", "mediapipe"], help="Pose backend")
    parser.add_argument("--fps", type=float, help="Target sampling FPS")
    parser.add_argument("--styling", action="store_true", help="Keep only the first dancer")
    parser.add_argument("--save", type=str, metavar="NAME", help="Save as named recording")
    parser.add_argument("--list", action="store_true", help="List saved recordings")
    parser.add_argument("--delete", type=str, metavar="ID", help="Delete a saved recording")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")

    return parser.parse_args(argv)


def get_config_for_preset(preset: str) -> DanceSageConfig:
    presets = {
        "default": DanceSageConfig,
        "fast": get_fast_config,
        "accurate": get_accurate_config,
        "live": get_live_config,
    }
    return presets[preset]()


def build_config(args) -> DanceSageConfig:
    config = get_config_for_preset(args.preset)

    if args.output_dir:
        config.output.output_dir = Path(args.output_dir)
    if args.input_dir:
        config.video.input_dir = Path(args.input_dir)
    if args.backend:
        config.landmarks.backend = args.backend
    if args.fps:
        config.video.target_fps = args.fps

    config.validate()
    return config


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)

    print("\n" + "=" * 60)
    print("DANCESAGE")
    print("=" * 60)

    config = build_config(args)
    if args.verbose:
        config.print_summary()

    with DanceAnalysisRunner(config) as runner:
        if args.list:
            runner.list_recordings()
            return
        if args.delete:
            runner.delete_recording(args.delete)
            return

        if args.video:
            runner.process_video(
                args.video,
                partner_mode=not args.styling,
                save_as=args.save,
            )
        else:
            runner.process_all_videos(partner_mode=not args.styling)

    print("\n✓ Pipeline complete!")


if __name__ == "__main__":
    main()
