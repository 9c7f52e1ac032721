"""
In-memory user store.

Records live in a list in insertion order; ids come from a counter that
starts at 1 and only ever goes up, so a deleted id is never handed out again.

The repository does no locking. HTTPServer runs one request at a time
through the handlers, which is what keeps these operations atomic.
"""

import logging
from typing import Iterator, List, Optional

from .models import User, UserDraft


logger = logging.getLogger(__name__)


class UserRepository:
    """
    Ordered collection of User records plus the id counter.

        repo = UserRepository()
        ana = repo.create(draft)        # ana.id == 1
        repo.get(1) is ana              # True
        repo.delete(1)                  # returns ana; the id 1 is retired
    """

    def __init__(self):
        self._users: List[User] = []
        self._next_id = 1

    @property
    def next_id(self) -> int:
        """The id the next create() will assign."""
        return self._next_id

    def list(self) -> List[User]:
        """All records, oldest first. The list is a copy."""
        return list(self._users)

    def get(self, user_id: int) -> Optional[User]:
        for user in self._users:
            if user.id == user_id:
                return user
        return None

    def create(self, draft: UserDraft) -> User:
        user = User.from_draft(self._next_id, draft)
        self._next_id += 1
        self._users.append(user)
        return user

    def update(self, user_id: int, draft: UserDraft) -> Optional[User]:
        """
        Replace name, email and date of birth of an existing record.

        Returns:
            The updated record (same object, same id), or None if there is
            no such id, in which case nothing changes.
        """
        user = self.get(user_id)
        if user is None:
            return None
        user.apply(draft)
        return user

    def delete(self, user_id: int) -> Optional[User]:
        """Detach and return the record, or None if there is no such id."""
        for index, user in enumerate(self._users):
            if user.id == user_id:
                return self._users.pop(index)
        return None

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[User]:
        return iter(list(self._users))

    def __contains__(self, user_id: object) -> bool:
        return any(user.id == user_id for user in self._users)
