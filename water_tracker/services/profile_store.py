import logging

from water_tracker.models import UserProfile
from water_tracker.services.calculations import recommended_intake
from water_tracker.services.storage import (
    USER_PROFILE_KEY,
    KeyValueStorage,
    LoadFailed,
    PersistenceError,
    decode_profile,
    encode_profile,
)


class ProfileStore:
    #Профиль хранится отдельно от записей о воде.

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self) -> UserProfile:
        try:
            return decode_profile(self.storage.get(USER_PROFILE_KEY))
        except LoadFailed as exc:
            self.logger.error("Failed to load profile: %s", exc)
            return UserProfile()

    def save(self, profile: UserProfile) -> bool:
        try:
            self.storage.put(USER_PROFILE_KEY, encode_profile(profile))
        except PersistenceError as exc:
            self.logger.error("Failed to save profile: %s", exc)
            return False
        return True

    def recommended_goal(self) -> float:
        return recommended_intake(self.load())
