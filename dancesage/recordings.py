"""
Saved dance recordings.

One JSON file per recording under the store directory. The timeline is kept as
nested numeric arrays (frames x people x 17 x 2) plus its fps.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from dancesage.errors import RecordingNotFoundError
from dancesage.skeleton import Timeline


@dataclass
class Recording:
    name: str
    timeline: Timeline
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def frame_count(self) -> int:
        return len(self.timeline)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "frame_count": self.frame_count,
            "fps": self.timeline.fps,
            "keypoints": self.timeline.to_array(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=datetime.fromisoformat(data["created_at"]),
            timeline=Timeline.from_array(data["keypoints"], fps=float(data.get("fps", 0.0))),
        )


class RecordingStore:
    """
    Example:
        >>> store = RecordingStore("./output/recordings")
        >>> rec = store.save("Cross body lead", timeline)
        >>> [r.name for r in store.list()]
        ['Cross body lead']
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, recording_id: str) -> Path:
        return self.directory / f"{recording_id}.json"

    def save(self, name: str, timeline: Timeline) -> Recording:
        name = name.strip()
        if not name:
            raise ValueError("Recording name must not be empty")

        recording = Recording(name=name, timeline=timeline)
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(recording.id), "w") as f:
            json.dump(recording.to_dict(), f)
        return recording

    def load(self, recording_id: str) -> Recording:
        path = self._path(recording_id)
        if not path.exists():
            raise RecordingNotFoundError(f"No recording with id {recording_id}")
        with open(path) as f:
            return Recording.from_dict(json.load(f))

    def list(self) -> List[Recording]:
        """All recordings, newest first."""
        if not self.directory.exists():
            return []
        recordings = []
        for path in self.directory.glob("*.json"):
            with open(path) as f:
                recordings.append(Recording.from_dict(json.load(f)))
        return sorted(recordings, key=lambda r: r.created_at, reverse=True)

    def delete(self, recording_id: str) -> bool:
        path = self._path(recording_id)
        if not path.exists():
            return False
        path.unlink()
        return True
