from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from academy_auth.core.errors import AccountConflictError, ConcurrentUpdateError, StoreError
from academy_auth.models.account import Account, normalize_email

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    def find_by_email(self, email: str) -> Optional[Account]: ...

    def find_by_id(self, account_id: int) -> Optional[Account]: ...

    def find_by_external_identity(self, provider: str, subject: str) -> Optional[Account]: ...

    def find_by_live_reset_token(self, token: str, *, now: datetime) -> Optional[Account]: ...

    def create(self, account: Account) -> Account: ...

    def save(self, account: Account) -> Account: ...


class SqlAccountStore:
    """SQLAlchemy-backed account persistence.

    Every write commits immediately. Driver errors are re-raised as
    ``StoreError`` subclasses so the lifecycle never sees SQLAlchemy types:

    - unique email / external identity collision on create -> ``AccountConflictError``
    - version mismatch on save -> ``ConcurrentUpdateError``
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        try:
            yield
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning("account store %s lost a concurrent update", op)
            raise ConcurrentUpdateError(f"Account changed concurrently during {op}") from exc
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("account store %s hit a uniqueness conflict", op)
            raise AccountConflictError(f"Account already exists ({op})") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("account store %s failed", op, exc_info=True)
            raise StoreError(f"Account store failure during {op}") from exc

    def find_by_email(self, email: str) -> Optional[Account]:
        key = normalize_email(email)
        if not key:
            return None
        with self._guard("find_by_email"):
            return self.db.query(Account).filter(Account.email_normalized == key).first()

    def find_by_id(self, account_id: int) -> Optional[Account]:
        with self._guard("find_by_id"):
            return self.db.get(Account, int(account_id))

    def find_by_external_identity(self, provider: str, subject: str) -> Optional[Account]:
        if not provider or not subject:
            return None
        with self._guard("find_by_external_identity"):
            return (
                self.db.query(Account)
                .filter(Account.oauth_provider == str(provider), Account.oauth_subject == str(subject))
                .first()
            )

    def find_by_live_reset_token(self, token: str, *, now: datetime) -> Optional[Account]:
        # Token match and expiry check in one predicate: an expired token and an
        # unknown token both come back as None.
        if not token:
            return None
        with self._guard("find_by_live_reset_token"):
            return (
                self.db.query(Account)
                .filter(
                    Account.password_reset_token == str(token),
                    Account.password_reset_expires.is_not(None),
                    Account.password_reset_expires > now,
                )
                .first()
            )

    def create(self, account: Account) -> Account:
        with self._guard("create"):
            self.db.add(account)
            self.db.commit()
            self.db.refresh(account)
        return account

    def save(self, account: Account) -> Account:
        with self._guard("save"):
            self.db.add(account)
            self.db.commit()
            self.db.refresh(account)
        return account
