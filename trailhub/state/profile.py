"""
Profile Store.

Loads and saves the user-editable profile and uploads avatar images.
"""

import mimetypes
from datetime import datetime, timezone
from typing import Optional

from trailhub.backend.base import StorageBackend, StoreBackend
from trailhub.config import AVATAR_BUCKET, PROFILES_TABLE, StateEvent
from trailhub.core.errors import BackendError, ValidationError
from trailhub.core.logger import logger
from trailhub.core.models import Identity, Profile
from trailhub.core.utils import generate_avatar_path
from trailhub.state.observable import IdentityScope, Observable


class ProfileStore(Observable):

    def __init__(self, store: StoreBackend, storage: StorageBackend, scope: IdentityScope):
        super().__init__()
        self.store = store
        self.storage = storage
        self.scope = scope
        self.profile: Optional[Profile] = None

    async def load(self, identity: Identity) -> Profile:
        """The saved profile, or one seeded from the identity when none exists yet."""
        token = self.scope.token()
        rows = await self.store.select(PROFILES_TABLE, {"id": identity.id})
        if rows:
            profile = Profile.from_record(rows[0], identity)
        else:
            profile = Profile.default_for(identity)

        if not self.scope.is_current(token):
            logger.info("Discarding profile response from a previous session")
            return profile

        self.profile = profile
        self._notify(StateEvent.PROFILE, profile=profile.model_dump(mode="json"))
        return profile

    async def save(self, identity: Identity, profile: Profile) -> Profile:
        """Upsert the profile row keyed by the identity id."""
        if profile.id != identity.id:
            raise ValidationError("A profile can only be saved by its owner.")

        updates = profile.model_dump(mode="json", exclude={"email"})
        updates["updated_at"] = datetime.now(timezone.utc).isoformat()

        token = self.scope.token()
        try:
            await self.store.upsert(PROFILES_TABLE, updates, on_conflict="id")
        except BackendError as e:
            logger.error(f"Error updating profile for {identity.id}: {e}")
            raise

        saved = profile.model_copy(update={"email": identity.email})
        if self.scope.is_current(token):
            self.profile = saved
            self._notify(StateEvent.PROFILE, profile=saved.model_dump(mode="json"))
        return saved

    async def upload_avatar(
        self,
        identity: Identity,
        image_bytes: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store an avatar image and return its public URL.

        The profile itself is not modified; the caller saves the returned URL
        as `avatar_url` when the user confirms the edit.
        """
        if not image_bytes:
            raise ValidationError("You must select an image to upload.")

        path = generate_avatar_path(filename)
        content_type = content_type or mimetypes.guess_type(filename or "")[0] or "application/octet-stream"
        try:
            await self.storage.upload(AVATAR_BUCKET, path, image_bytes, content_type)
        except BackendError as e:
            logger.error(f"Error uploading avatar for {identity.id}: {e}")
            raise

        url = self.storage.get_public_url(AVATAR_BUCKET, path)
        logger.info(f"Uploaded avatar for {identity.id} to {path}")
        return url

    def clear(self) -> None:
        self.profile = None
        self._notify(StateEvent.PROFILE, profile=None)
