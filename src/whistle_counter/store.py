"""Named whistle profile storage.

Profiles are kept in a mapping keyed by the case-folded profile name.
Every write builds a new mapping, persists it, and then swaps it in as a
whole, so readers always see a complete collection.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

import yaml

from .errors import ProfileNameRequired, StoreUnavailable
from .models import NamedProfile, WhistleProfile, profile_key

logger = logging.getLogger(__name__)


def _require_name(name: Optional[str]) -> str:
    if name is None or not str(name).strip():
        raise ProfileNameRequired("Please enter a name for the profile")
    return str(name).strip()


class ProfileStore:
    """In-memory collection of named whistle profiles.

    Subclasses override `_read()` and `_write()` to persist the collection.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._profiles: Dict[str, NamedProfile] = {}
        self.load_error: Optional[str] = None

    # -- Persistence hooks --

    def _read(self) -> List[NamedProfile]:
        return []

    def _write(self, profiles: List[NamedProfile]) -> None:
        pass

    def load(self) -> None:
        """(Re)load the collection from the backend.

        A backend failure leaves an empty collection and records the
        reason in `load_error` instead of raising.
        """
        try:
            loaded = self._read()
            self.load_error = None
        except StoreUnavailable as e:
            logger.error(f"Error loading saved profiles: {e}")
            loaded = []
            self.load_error = str(e)

        profiles = {}
        for entry in loaded:
            profiles[entry.key] = entry
        self._profiles = profiles
        logger.info(f"Loaded {len(profiles)} saved profile(s)")

    # -- Queries --

    def list(self) -> List[NamedProfile]:
        return list(self._profiles.values())

    def names(self) -> List[str]:
        return [entry.name for entry in self._profiles.values()]

    def get(self, name: str) -> Optional[WhistleProfile]:
        entry = self._profiles.get(profile_key(_require_name(name)))
        return entry.profile if entry else None

    def find(self, profile: WhistleProfile) -> Optional[str]:
        """Name under which an identical profile is stored, if any."""
        for entry in self._profiles.values():
            if entry.profile == profile:
                return entry.name
        return None

    def __contains__(self, name: str) -> bool:
        return bool(name) and profile_key(name) in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[NamedProfile]:
        return iter(self.list())

    # -- Updates --

    def put(self, name: str, profile: WhistleProfile) -> bool:
        """Save a profile, replacing any profile with the same name.

        Returns:
            True if a new entry was created, False if one was replaced.

        Raises:
            ProfileNameRequired: If the name is blank.
            StoreUnavailable: If the backend could not persist the collection.
                The in-memory collection is updated regardless.
        """
        name = _require_name(name)
        entry = NamedProfile(name=name, profile=profile)

        with self._lock:
            profiles = dict(self._profiles)
            created = entry.key not in profiles
            # Replacing an existing key keeps its position
            profiles[entry.key] = entry
            self._commit(profiles)

        logger.info(f"Profile \"{name}\" {'saved' if created else 'updated'}")
        return created

    def delete(self, name: str) -> bool:
        """Delete a profile by name.

        Returns:
            True if a profile was deleted, False if none had that name.
        """
        key = profile_key(_require_name(name))
        with self._lock:
            if key not in self._profiles:
                logger.warning(f"Profile \"{name}\" not found for deletion")
                return False
            profiles = {k: v for k, v in self._profiles.items() if k != key}
            self._commit(profiles)

        logger.info(f"Profile \"{name}\" deleted")
        return True

    def _commit(self, profiles: Dict[str, NamedProfile]) -> None:
        try:
            self._write(list(profiles.values()))
        finally:
            self._profiles = profiles


class MemoryProfileStore(ProfileStore):
    """Profile store without persistence."""

    def __init__(self, profiles: Optional[List[NamedProfile]] = None):
        super().__init__()
        for entry in profiles or []:
            self._profiles[entry.key] = entry


class YamlProfileStore(ProfileStore):
    """Profile store persisted as a YAML list of `{name, profile}` records."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self.load()

    def _read(self) -> List[NamedProfile]:
        if not self.path.exists():
            logger.info(f"No saved profiles at {self.path}")
            return []

        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or []
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, list):
            raise StoreUnavailable(f"Corrupted profile file {self.path}: expected a list")

        profiles = []
        for item in data:
            try:
                profiles.append(
                    NamedProfile(name=str(item["name"]), profile=WhistleProfile.from_dict(item["profile"]))
                )
            except (KeyError, TypeError, ValueError) as e:
                raise StoreUnavailable(f"Corrupted profile entry in {self.path}: {e}") from e
        return profiles

    def _write(self, profiles: List[NamedProfile]) -> None:
        data = [{"name": entry.name, "profile": entry.profile.to_dict()} for entry in profiles]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(data, f, sort_keys=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Error saving profiles to {self.path}: {e}")
            raise StoreUnavailable(f"Cannot write {self.path}: {e}") from e
