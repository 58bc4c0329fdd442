"""
The durable account record.

:class:`CredentialStore` is the only component that writes an account's
password hash and onboarding state. Everything else reads them through it.
"""

from typing import Any, List, Optional, Tuple
from datetime import datetime
import logging

from pytz import UTC
from retry import retry
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from ..domain import Account, DEFAULT_ROLE, OnboardingProgress, \
    OnboardingStatus, Role, normalize_email
from . import passwords, steps
from .datastore import Datastore
from .datastore.models import DBAccount, DBIdentityLink, DBOnboardingProgress
from .exceptions import AlreadyHasPassword, DuplicateEmail, InvalidInput, \
    InvalidTransition, NoPasswordSet, NoSuchAccount, Unavailable, \
    WrongPassword

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def to_account(db_account: DBAccount) -> Account:
    """Cast a :class:`.DBAccount` to an :class:`.Account`."""
    return Account(
        account_id=db_account.account_id,
        email=db_account.email,
        role=Role(db_account.role),
        onboarding_status=OnboardingStatus(db_account.onboarding_status),
        onboarding_step=db_account.onboarding_step,
        has_password=db_account.password_hash is not None,
        name=db_account.name,
        email_verified=db_account.email_verified,
        created=db_account.created
    )


def to_progress(db_progress: DBOnboardingProgress) -> OnboardingProgress:
    return OnboardingProgress(
        account_id=db_progress.account_id,
        current_step=db_progress.current_step,
        completed_steps=list(db_progress.completed_steps or []),
        started_at=db_progress.started_at,
        completed_at=db_progress.completed_at
    )


class CredentialStore:
    """Reads and writes accounts, passwords and onboarding state."""

    def __init__(self, datastore: Datastore, bcrypt_rounds: int = 12) -> None:
        self._datastore = datastore
        self.bcrypt_rounds = bcrypt_rounds

    def hash_password(self, password: str) -> str:
        return passwords.hash_password(password, self.bcrypt_rounds)

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def create_account(self, email: str,
                       password_hash: Optional[str] = None,
                       role: Role = DEFAULT_ROLE,
                       name: Optional[str] = None,
                       onboarding_step: Optional[str] = _UNSET,
                       identity: Optional[Tuple[str, str]] = None,
                       email_verified: Optional[datetime] = None) -> Account:
        """
        Create a new account.

        Parameters
        ----------
        email : str
            Normalized before use.
        password_hash : str or None
            Absent for accounts that sign in only through a provider.
        role : :class:`.Role`
        name : str or None
        onboarding_step : str or None
            Defaults to the first step for ``role``, in which case an
            :class:`.OnboardingProgress` record is seeded at that step.
            Pass ``None`` to create the bare record a provider callback
            leaves behind; it is initialized when the first session is
            minted.
        identity : tuple or None
            ``(provider, provider_account_id)`` to link in the same
            transaction. Required when ``password_hash`` is absent.
        email_verified : datetime or None

        Returns
        -------
        :class:`.Account`

        Raises
        ------
        :class:`.DuplicateEmail`
            If an account already exists with the normalized ``email``.
        :class:`.InvalidInput`
            If the account would have neither password nor identity link.

        """
        email = normalize_email(email)
        if password_hash is None and identity is None:
            raise InvalidInput('An account needs a password or a provider')
        if onboarding_step is _UNSET:
            onboarding_step = steps.first_step(role)
        try:
            with self._datastore.transaction() as session:
                if self._load_by_email(session, email) is not None:
                    raise DuplicateEmail('An account with this email exists')
                db_account = DBAccount(
                    email=email,
                    name=name,
                    password_hash=password_hash,
                    role=role.value,
                    onboarding_status=OnboardingStatus.PENDING.value,
                    onboarding_step=onboarding_step,
                    email_verified=email_verified
                )
                session.add(db_account)
                session.flush()
                if onboarding_step is not None:
                    session.add(DBOnboardingProgress(
                        account_id=db_account.account_id,
                        current_step=onboarding_step,
                        completed_steps=[],
                        started_at=_utcnow()
                    ))
                if identity is not None:
                    provider, provider_account_id = identity
                    session.add(DBIdentityLink(
                        account_id=db_account.account_id,
                        provider=provider,
                        provider_account_id=provider_account_id
                    ))
                account = to_account(db_account)
        except IntegrityError as e:
            logger.debug('Integrity error while creating account: %s', e)
            raise DuplicateEmail('An account with this email exists') from e
        logger.info('Created account %s', account.account_id)
        return account

    def get_account(self, account_id: str) -> Account:
        """
        Load an account by its stable id.

        Raises
        ------
        :class:`.NoSuchAccount`

        """
        with self._datastore.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                raise NoSuchAccount(f'No account with id {account_id}')
            return to_account(db_account)

    def find_by_email(self, email: str) -> Optional[Account]:
        """Load an account by e-mail address, if there is one."""
        with self._datastore.transaction() as session:
            db_account = self._load_by_email(session, normalize_email(email))
            return to_account(db_account) if db_account else None

    def get_by_email(self, email: str) -> Account:
        """
        Load an account by e-mail address.

        Raises
        ------
        :class:`.NoSuchAccount`

        """
        account = self.find_by_email(email)
        if account is None:
            raise NoSuchAccount('No account with this email')
        return account

    def get_progress(self, account_id: str) -> Optional[OnboardingProgress]:
        with self._datastore.transaction() as session:
            db_progress = session.get(DBOnboardingProgress, account_id)
            return to_progress(db_progress) if db_progress else None

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def attach_password(self, account_id: str, password_hash: str) -> None:
        """
        Give a password to an account that has none.

        The update is conditional on the hash being absent, so an existing
        password is never overwritten here. Use :meth:`set_password` for
        resets.

        Raises
        ------
        :class:`.NoSuchAccount`
        :class:`.AlreadyHasPassword`

        """
        with self._datastore.transaction() as session:
            updated = session.query(DBAccount) \
                .filter(DBAccount.account_id == account_id) \
                .filter(DBAccount.password_hash.is_(None)) \
                .update({DBAccount.password_hash: password_hash},
                        synchronize_session=False)
            if updated == 1:
                logger.info('Attached password to account %s', account_id)
                return
            if session.get(DBAccount, account_id) is None:
                raise NoSuchAccount(f'No account with id {account_id}')
        raise AlreadyHasPassword('This account already has a password')

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def set_password(self, account_id: str, password_hash: str) -> None:
        """
        Replace the password of an account.

        Raises
        ------
        :class:`.NoSuchAccount`

        """
        with self._datastore.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                raise NoSuchAccount(f'No account with id {account_id}')
            db_account.password_hash = password_hash
        logger.info('Set password for account %s', account_id)

    def verify_password(self, email: str, password: str) -> Account:
        """
        Check an e-mail and password combination.

        Raises
        ------
        :class:`.NoSuchAccount`
        :class:`.NoPasswordSet`
            The account exists but can only sign in through a provider.
        :class:`.WrongPassword`

        """
        with self._datastore.transaction() as session:
            db_account = self._load_by_email(session, normalize_email(email))
            if db_account is None:
                password_hash = None
                account = None
            else:
                password_hash = db_account.password_hash
                account = to_account(db_account)
        if account is None:
            passwords.burn_check(password, self.bcrypt_rounds)
            raise NoSuchAccount('No account with this email')
        if password_hash is None:
            raise NoPasswordSet('This account has no password')
        if not passwords.check_password(password, password_hash):
            raise WrongPassword('Password does not match')
        return account

    def mark_email_verified(self, account_id: str,
                            when: Optional[datetime] = None) -> None:
        """Record that the account's e-mail address has been verified."""
        with self._datastore.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                raise NoSuchAccount(f'No account with id {account_id}')
            if db_account.email_verified is None:
                db_account.email_verified = when or _utcnow()

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def update_onboarding(self, account_id: str,
                          status: Optional[OnboardingStatus] = None,
                          step: Optional[str] = _UNSET,
                          role: Optional[Role] = None,
                          completed: Optional[List[str]] = None,
                          override: bool = False) -> Account:
        """
        Write onboarding state. This is the only writer of that state.

        The progress record is created if it does not exist yet.

        Parameters
        ----------
        account_id : str
        status : :class:`.OnboardingStatus` or None
            New status, if it changes.
        step : str or None
            New current step. Must be ``None`` exactly when the resulting
            status is COMPLETED.
        role : :class:`.Role` or None
            New role, if it changes.
        completed : list or None
            Steps to append to the completed steps. Steps already present
            are ignored.
        override : bool
            Allow a COMPLETED account to be moved back. Reserved for
            administrative use.

        Returns
        -------
        :class:`.Account`
            The account as written.

        Raises
        ------
        :class:`.NoSuchAccount`
        :class:`.InvalidTransition`

        """
        with self._datastore.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                raise NoSuchAccount(f'No account with id {account_id}')
            current = OnboardingStatus(db_account.onboarding_status)
            new_status = status or current
            new_step = db_account.onboarding_step if step is _UNSET else step

            if current is OnboardingStatus.COMPLETED \
                    and new_status is not OnboardingStatus.COMPLETED \
                    and not override:
                raise InvalidTransition('Onboarding is already complete')
            if current is OnboardingStatus.COMPLETED and role is not None \
                    and role.value != db_account.role and not override:
                raise InvalidTransition('Role is fixed once onboarding is '
                                        'complete')
            if new_status is OnboardingStatus.COMPLETED and new_step is not None:
                raise InvalidTransition('A completed account has no step')
            if new_status is not OnboardingStatus.COMPLETED and new_step is None:
                raise InvalidTransition('An incomplete account needs a step')

            db_account.onboarding_status = new_status.value
            db_account.onboarding_step = new_step
            if role is not None:
                db_account.role = role.value

            db_progress = db_account.progress
            if db_progress is None:
                db_progress = DBOnboardingProgress(account_id=account_id,
                                                   completed_steps=[],
                                                   started_at=_utcnow())
                session.add(db_progress)
            done = list(db_progress.completed_steps or [])
            for done_step in completed or []:
                if done_step not in done:
                    done.append(done_step)
            db_progress.completed_steps = done
            db_progress.current_step = new_step
            if new_status is OnboardingStatus.COMPLETED:
                if db_progress.completed_at is None:
                    db_progress.completed_at = _utcnow()
            elif override:
                db_progress.completed_at = None
            account = to_account(db_account)
        logger.debug('Onboarding for %s is now %s at %s', account_id,
                     account.onboarding_status.value, account.onboarding_step)
        return account

    def delete_account(self, account_id: str) -> None:
        """
        Remove an account along with its links, progress and profiles.

        Raises
        ------
        :class:`.NoSuchAccount`

        """
        with self._datastore.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                raise NoSuchAccount(f'No account with id {account_id}')
            session.delete(db_account)
        logger.info('Deleted account %s', account_id)

    def _load_by_email(self, session: Session,
                       email: str) -> Optional[DBAccount]:
        db_account: Optional[DBAccount] = session.query(DBAccount) \
            .filter(DBAccount.email == email) \
            .first()
        return db_account
