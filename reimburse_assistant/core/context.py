"""Explicit application context: who is acting and with what privileges."""
import logging
from typing import Optional

from reimburse_assistant.config import Settings
from reimburse_assistant.services.profile_store import ProfileStore

from .exceptions import AuthorizationFailure
from .models import UserProfile

logger = logging.getLogger(__name__)


class AppContext:
    """Current user profile and admin mode, passed to every handler.

    Admin mode can only be switched on by the super admin, and it is what
    makes an actor privileged: the super admin outside admin mode is treated
    like any other submitter.
    """

    def __init__(self, settings: Settings, profile_store: Optional[ProfileStore] = None) -> None:
        self.settings = settings
        self.profile_store = profile_store or ProfileStore(settings.profile_path)
        self._profile: Optional[UserProfile] = None
        self._admin_mode = False

    def load(self) -> Optional[UserProfile]:
        self._profile = self.profile_store.load()
        self._admin_mode = False
        return self._profile

    def login(self, profile: UserProfile) -> UserProfile:
        """Save a profile, replacing any previous one."""
        self.profile_store.save(profile)
        self._profile = profile
        self._admin_mode = False
        return profile

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    def require_profile(self) -> UserProfile:
        if self._profile is None:
            raise AuthorizationFailure("continue", "no profile saved, log in first")
        return self._profile

    @property
    def is_super_admin(self) -> bool:
        return self._profile is not None and self._profile.student_id == self.settings.super_admin_id

    @property
    def admin_mode(self) -> bool:
        return self._admin_mode

    def enable_admin_mode(self) -> None:
        if not self.is_super_admin:
            raise AuthorizationFailure("enter admin mode", "only the super admin may manage all records")
        self._admin_mode = True
        logger.info(f"Admin mode enabled for {self._profile.student_id}")

    def disable_admin_mode(self) -> None:
        self._admin_mode = False

    @property
    def is_privileged(self) -> bool:
        return self.is_super_admin and self._admin_mode

    @property
    def owner_scope(self) -> Optional[str]:
        """Owner filter for queries and exports; None means all records."""
        if self._admin_mode:
            return None
        return self.require_profile().student_id
