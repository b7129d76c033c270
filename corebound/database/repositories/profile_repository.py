"""Profile repository: profile rows, username lookups and legal acceptance."""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models import Profile, utcnow


class ProfileRepository:
    """Repository for user profiles.

    A profile row shares its ID with the auth user. Most write paths call
    get_or_create first so a user who never opened the profile page still
    has one.

    Example:
        >>> repo = ProfileRepository(db)
        >>> profile = repo.get_or_create(user.id, display_name="trader_01")
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[Profile]:
        return self.db.query(Profile).filter_by(id=user_id).first()

    def exists(self, user_id: str) -> bool:
        return self.db.query(Profile.id).filter_by(id=user_id).first() is not None

    def get_by_username(self, username: str) -> Optional[Profile]:
        return self.db.query(Profile).filter_by(username=username).first()

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        """Load profiles by ID.

        Returns:
            Mapping of user ID to profile, missing IDs omitted
        """
        ids = list(set(user_ids))
        if not ids:
            return {}
        profiles = self.db.query(Profile).filter(Profile.id.in_(ids)).all()
        return {p.id: p for p in profiles}

    def create(self, user_id: str, **fields) -> Profile:
        profile = Profile(id=user_id, **fields)
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def get_or_create(self, user_id: str, **defaults) -> Profile:
        """Return the profile, creating it with defaults when missing.

        A default username already held by someone else is dropped rather
        than failing the request.
        """
        profile = self.get(user_id)
        if profile:
            return profile

        username = defaults.get("username")
        if username and self.get_by_username(username):
            defaults.pop("username")
        return self.create(user_id, **defaults)

    def update(self, user_id: str, updates: dict) -> Optional[Profile]:
        profile = self.get(user_id)
        if profile:
            for key, value in updates.items():
                setattr(profile, key, value)
            self.db.commit()
            self.db.refresh(profile)
        return profile

    def is_username_available(self, username: str, user_id: Optional[str] = None) -> bool:
        """True when nobody else holds the username.

        A username held by user_id itself counts as available.
        """
        holder = self.get_by_username(username)
        return holder is None or (user_id is not None and holder.id == user_id)

    def accept_legal(
        self,
        user_id: str,
        ip: str,
        user_agent: str,
        accepted_at: Optional[datetime] = None,
    ) -> Profile:
        """Record acceptance of the terms and the risk disclosure."""
        accepted_at = accepted_at or utcnow()
        return self.update(user_id, {
            "terms_accepted_at": accepted_at,
            "risk_accepted_at": accepted_at,
            "accepted_ip": ip,
            "accepted_user_agent": user_agent,
        })

    def summaries(self, user_ids: Iterable[str]) -> List[dict]:
        """Author summaries in the order of user_ids, skipping unknown IDs."""
        ids = list(user_ids)
        profiles = self.get_many(ids)
        return [profiles[i].to_summary() for i in ids if i in profiles]
