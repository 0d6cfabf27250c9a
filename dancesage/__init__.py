"""DanceSage: dance pose tracking and beat counting."""
from dancesage.skeleton import (
    Point2D,
    INVALID_POINT,
    Skeleton,
    PoseFrame,
    Timeline,
)
from dancesage.errors import (
    DanceSageError,
    NoVideoTrackError,
    LandmarkSourceUnavailable,
    FrameExtractionError,
    FrameDetectionError,
    RecordingNotFoundError,
)
from dancesage.landmark_sources import (
    LandmarkSource,
    RawLandmark,
    RawPerson,
    YoloLandmarkSource,
    MediaPipeLandmarkSource,
    create_landmark_source,
)
from dancesage.normalizer import KeypointNormalizer, normalize
from dancesage.transform import AspectFillTransform
from dancesage.tracker import MultiPersonTracker, TrackState, reference_point
from dancesage.video_processor import VideoProcessor, VideoReader, VideoMetadata
from dancesage.frame_pipeline import FramePipeline, PipelineOutcome, PipelineResult
from dancesage.beat_detector import BeatDetector, BeatTrack
from dancesage.count_aligner import beat_number
from dancesage.live import LiveSession
from dancesage.recordings import Recording, RecordingStore
from dancesage.analysis import DanceAnalyzer, DanceAnalysis
