"""
User Service - registration, profile, notification preferences, the
reputation leaderboard and account deactivation.

Phone and email are stored normalized so identifier matching against report
evidence is a plain equality lookup.
"""

from typing import Any, Dict, Optional
import logging

from alerthub.config.firebase import get_db
from alerthub.core.context import get_context
from alerthub.core.exceptions import UserNotFoundError
from alerthub.models.report import utcnow
from alerthub.models.user import DeviceUpdate, GeoPoint, PreferencesUpdate, UserCreate, UserProfile
from alerthub.utils.firestore_helpers import where_filter

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

LEADERBOARD_FIELDS = ("trust_score", "report_count", "verification_count")
DEFAULT_LEADERBOARD_SIZE = 50
MAX_LEADERBOARD_SIZE = 100

DEACTIVATION_CONFIRMATION = "DELETE"


class UserService:

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()

    def register(self, data: UserCreate) -> UserProfile:
        """
        Create a user.

        Raises:
            ValueError: email already registered
        """
        existing = where_filter(self.db.collection(USERS_COLLECTION), "email", "==", data.email).limit(1)
        if list(existing.stream()):
            raise ValueError(f"Email already registered: {data.email}")

        ref = self.db.collection(USERS_COLLECTION).document()
        user = UserProfile(id=ref.id, **data.model_dump())
        try:
            ref.set(user.model_dump())
        except Exception as e:
            logger.error(f"Failed to create user: {e}", exc_info=True)
            raise
        logger.info(f"User created: {ref.id}")
        return user

    def get_user(self, user_id: str) -> UserProfile:
        snapshot = self.db.collection(USERS_COLLECTION).document(user_id).get()
        if not snapshot.exists:
            raise UserNotFoundError(user_id)
        data = snapshot.to_dict()
        data.setdefault("id", snapshot.id)
        return UserProfile.model_validate(data)

    def public_profile(self, user_id: str) -> Dict:
        return self.get_user(user_id).public_profile()

    def update_preferences(self, user_id: str, update: PreferencesUpdate) -> UserProfile:
        changes = {
            f"preferences.{key}": value
            for key, value in update.model_dump(exclude_none=True).items()
        }
        return self._update(user_id, changes)

    def update_location(self, user_id: str, location: GeoPoint) -> UserProfile:
        return self._update(user_id, {"location": location.model_dump()})

    def update_device(self, user_id: str, device: DeviceUpdate) -> UserProfile:
        changes = {f"device.{key}": value for key, value in device.model_dump(exclude_none=True).items()}
        changes["device.last_seen"] = utcnow()
        return self._update(user_id, changes)

    def leaderboard(
        self,
        sort_by: str = "trust_score",
        limit: int = DEFAULT_LEADERBOARD_SIZE,
        user_id: Optional[str] = None,
    ) -> Dict:
        """
        Active users ranked by trust score, report count or verification count.

        Users with nothing to rank on (a zero in the chosen field) are left
        out. Ties go to the earlier member. my_rank is the caller's place in
        the full ranking, not only the returned slice.
        """
        if sort_by not in LEADERBOARD_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(LEADERBOARD_FIELDS)}")
        if not 1 <= limit <= MAX_LEADERBOARD_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_LEADERBOARD_SIZE}")

        query = where_filter(self.db.collection(USERS_COLLECTION), "is_active", "==", True)
        ranked = []
        for doc in query.stream():
            data = doc.to_dict()
            data.setdefault("id", doc.id)
            user = UserProfile.model_validate(data)
            if getattr(user, sort_by) > 0:
                ranked.append(user)
        ranked.sort(key=lambda u: (-getattr(u, sort_by), u.created_at))

        my_rank = next((rank for rank, u in enumerate(ranked, start=1) if u.id == user_id), None)
        return {
            "leaderboard": [{"rank": rank, **u.public_profile()} for rank, u in enumerate(ranked[:limit], start=1)],
            "my_rank": my_rank,
            "total_users": len(ranked),
        }

    def deactivate(self, user_id: str, confirmation: str) -> None:
        """
        Deactivate an account. The user stops receiving alerts and leaves the
        leaderboard; the email is released so it can register again.

        Raises:
            ValueError: confirmation is not "DELETE"
            UserNotFoundError: user does not exist
        """
        if confirmation != DEACTIVATION_CONFIRMATION:
            raise ValueError(f'Confirm deactivation by sending "{DEACTIVATION_CONFIRMATION}"')

        user = self.get_user(user_id)
        changes: Dict[str, Any] = {"is_active": False}
        if user.email and not user.email.startswith("deleted_"):
            changes["email"] = f"deleted_{int(utcnow().timestamp() * 1000)}_{user.email}"
        self.db.collection(USERS_COLLECTION).document(user_id).update(changes)
        logger.info(f"User {user_id} deactivated")

    def _update(self, user_id: str, changes: Dict) -> UserProfile:
        ref = self.db.collection(USERS_COLLECTION).document(user_id)
        if not ref.get().exists:
            raise UserNotFoundError(user_id)
        if changes:
            ref.update(changes)
        return self.get_user(user_id)


def get_user_service() -> UserService:
    """UserService bound to the current application context store."""
    return UserService(get_context().db)
