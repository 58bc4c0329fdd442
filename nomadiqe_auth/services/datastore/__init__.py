"""
Database integration for accounts, identity links, tokens and onboarding.

A :class:`Datastore` owns one SQLAlchemy engine and session factory. It is
constructed once at application start and handed to every component that
needs persistence; there is no module-level connection.
"""

from typing import Generator
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session
from sqlalchemy.pool import StaticPool

from ..exceptions import Unavailable
from . import models
from .models import Base

logger = logging.getLogger(__name__)


class Datastore:
    """Persistence handle shared by the service components."""

    def __init__(self, uri: str, echo: bool = False) -> None:
        """
        Configure a new datastore.

        Parameters
        ----------
        uri : str
            SQLAlchemy database URI. ``sqlite://`` gives a private in-memory
            database shared by all sessions of this instance.
        echo : bool
            Log emitted SQL.

        """
        params: dict = {'echo': echo}
        if uri.startswith('sqlite'):
            params['connect_args'] = {'check_same_thread': False}
            if uri in ('sqlite://', 'sqlite:///:memory:'):
                params['poolclass'] = StaticPool
        self.uri = uri
        self.engine: Engine = create_engine(uri, **params)
        self._sessionmaker = sessionmaker(bind=self.engine,
                                          expire_on_commit=False)

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Context manager for a database transaction.

        Commits when the block exits normally, rolls back otherwise. Driver
        level connectivity problems are raised as :class:`.Unavailable`.
        """
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            logger.warning('Database unavailable, rolling back: %s', e)
            session.rollback()
            raise Unavailable('Database is unavailable') from e
        except Exception as e:
            logger.debug('Rolling back transaction: %s', e)
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    def close(self) -> None:
        """Release all pooled connections."""
        logger.debug('Disposing database engine')
        self.engine.dispose()


__all__ = ('Datastore', 'models')
