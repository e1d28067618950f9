"""Local persistence of the user's identity profile."""
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from reimburse_assistant.core.models import UserProfile

logger = logging.getLogger(__name__)


class ProfileStore:
    """Keeps one UserProfile as a JSON file on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Optional[UserProfile]:
        """Return the saved profile, or None when there is no usable one."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return UserProfile.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable profile at {self.path}: {e}")
            return None

    def save(self, profile: UserProfile) -> None:
        """Overwrite the saved profile."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(profile.model_dump(by_alias=True), ensure_ascii=False, indent=2),
            encoding="utf-8"
        )
        logger.info(f"Saved profile for {profile.student_id} to {self.path}")
