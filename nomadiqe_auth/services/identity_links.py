"""Associations between accounts and external identity providers."""

from typing import Callable, List, Optional
import logging
import time

from sqlalchemy.exc import IntegrityError

from ..domain import Account, IdentityLink, normalize_email
from .credentials import CredentialStore, to_account
from .datastore import Datastore
from .datastore.models import DBAccount, DBIdentityLink
from .exceptions import AlreadyLinked, DuplicateEmail, NoSuchAccount
from .polling import Ok, poll

logger = logging.getLogger(__name__)


def to_link(db_link: DBIdentityLink) -> IdentityLink:
    return IdentityLink(
        provider=db_link.provider,
        provider_account_id=db_link.provider_account_id,
        account_id=db_link.account_id,
        created=db_link.created
    )


class IdentityLinkRegistry:
    """Records which provider identities belong to which account."""

    def __init__(self, datastore: Datastore, credentials: CredentialStore,
                 attempts: int = 3, delay: float = 0.2,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self._datastore = datastore
        self._credentials = credentials
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep

    def find_link(self, provider: str,
                  provider_account_id: str) -> Optional[IdentityLink]:
        with self._datastore.transaction() as session:
            db_link = self._load_link(session, provider, provider_account_id)
            return to_link(db_link) if db_link else None

    def links_for(self, account_id: str) -> List[IdentityLink]:
        """Get all provider links of an account."""
        with self._datastore.transaction() as session:
            db_links = session.query(DBIdentityLink) \
                .filter(DBIdentityLink.account_id == account_id) \
                .order_by(DBIdentityLink.link_id) \
                .all()
            return [to_link(db_link) for db_link in db_links]

    def link_or_create(self, provider: str, provider_account_id: str,
                       email: str, name: Optional[str] = None) -> Account:
        """
        Resolve a provider identity to an account, linking or creating one.

        This implements *dangerous linking*. When no link exists for the
        provider identity but an account already uses the same e-mail
        address, the new link is attached to that existing account without
        asking the user to prove ownership again. The provider has asserted
        the address, and we trust that assertion: if the user's mailbox
        provider were compromised, an attacker could take over the account
        this way. In exchange, someone who signed up with a password (or
        with another provider) can later sign in with any provider using the
        same address, without ending up with a second account.

        Parameters
        ----------
        provider : str
            Provider name, e.g. ``google``.
        provider_account_id : str
            The account id issued by the provider.
        email : str
            Address asserted by the provider.
        name : str or None
            Display name asserted by the provider.

        Returns
        -------
        :class:`.Account`

        """
        email = normalize_email(email)
        link = self.find_link(provider, provider_account_id)
        if link is not None:
            return self._credentials.get_account(link.account_id)

        existing = self._credentials.find_by_email(email)
        if existing is not None:
            return self._attach(existing, provider, provider_account_id)

        try:
            account = self._credentials.create_account(
                email,
                name=name,
                onboarding_step=None,
                identity=(provider, provider_account_id)
            )
        except DuplicateEmail:
            # Another callback created the account (or the link) first.
            logger.debug('Lost race creating account for %s callback',
                         provider)
            link = self.find_link(provider, provider_account_id)
            if link is not None:
                return self._credentials.get_account(link.account_id)
            return self._attach(self._credentials.get_by_email(email),
                                provider, provider_account_id)
        logger.info('Created account %s from %s callback',
                    account.account_id, provider)
        return account

    def await_account(self, provider: str,
                      provider_account_id: str) -> Account:
        """
        Read the account behind a provider identity, tolerating lag.

        The account row written during a provider callback may not be
        visible yet. Reads are retried on a fixed schedule before giving up.

        Raises
        ------
        :class:`.NoSuchAccount`
            If the account is still not visible after the last attempt.

        """
        result = poll(lambda: self._find_account(provider, provider_account_id),
                      accept=lambda account: account is not None,
                      attempts=self.attempts, delay=self.delay, backoff=1.0,
                      sleep=self._sleep)
        if isinstance(result, Ok):
            return result.value
        logger.warning('No account visible for %s identity after %i reads',
                       provider, result.attempts)
        raise NoSuchAccount('Account not found after provider sign-in')

    def _attach(self, account: Account, provider: str,
                provider_account_id: str) -> Account:
        try:
            with self._datastore.transaction() as session:
                if self._load_link(session, provider,
                                   provider_account_id) is None:
                    session.add(DBIdentityLink(
                        account_id=account.account_id,
                        provider=provider,
                        provider_account_id=provider_account_id
                    ))
        except IntegrityError as e:
            link = self.find_link(provider, provider_account_id)
            if link is None:
                raise AlreadyLinked(f'Account is linked to another {provider}'
                                    ' identity') from e
            return self._credentials.get_account(link.account_id)
        logger.info('Linked %s identity to existing account %s', provider,
                    account.account_id)
        return account

    def _find_account(self, provider: str,
                      provider_account_id: str) -> Optional[Account]:
        with self._datastore.transaction() as session:
            db_account = session.query(DBAccount) \
                .join(DBIdentityLink,
                      DBIdentityLink.account_id == DBAccount.account_id) \
                .filter(DBIdentityLink.provider == provider) \
                .filter(DBIdentityLink.provider_account_id
                        == provider_account_id) \
                .first()
            return to_account(db_account) if db_account else None

    def _load_link(self, session, provider: str,  # type: ignore
                   provider_account_id: str) -> Optional[DBIdentityLink]:
        db_link: Optional[DBIdentityLink] = session.query(DBIdentityLink) \
            .filter(DBIdentityLink.provider == provider) \
            .filter(DBIdentityLink.provider_account_id == provider_account_id) \
            .first()
        return db_link
