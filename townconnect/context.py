"""Application context wiring the data store, ledger and stores together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .backend import DataStore, MemoryDataStore
from .config import Settings, load_settings
from .counters import CounterLedger
from .database import create_db_engine
from .engagement import EngagementTally
from .events import EventAggregator
from .feed import FeedComposer
from .profiles import UserDirectory
from .relationships import RelationshipStore
from .sql_store import SqlDataStore
from .storage import init_db
from .utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a command or view needs, built once and passed explicitly."""

    settings: Settings
    datastore: DataStore
    ledger: CounterLedger
    users: UserDirectory
    relationships: RelationshipStore
    events: EventAggregator
    engagement: EngagementTally
    feed: FeedComposer

    async def bootstrap(self) -> None:
        """Refresh every snapshot from the data store."""
        await self.users.refresh()
        await self.relationships.refresh()
        await self.events.refresh()
        await self.engagement.refresh()

    async def close(self) -> None:
        await self.datastore.close()


def build_context(
    datastore: DataStore,
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> AppContext:
    settings = settings or load_settings()
    ledger = CounterLedger(datastore)
    users = UserDirectory(datastore)
    relationships = RelationshipStore(datastore, ledger, users)
    events = EventAggregator(datastore, ledger, users, clock=clock)
    engagement = EngagementTally(datastore, ledger, users, clock=clock)
    feed = FeedComposer(relationships, events, default_limit=settings.feed_limit)
    return AppContext(
        settings=settings,
        datastore=datastore,
        ledger=ledger,
        users=users,
        relationships=relationships,
        events=events,
        engagement=engagement,
        feed=feed,
    )


def create_context(settings: Settings | None = None) -> AppContext:
    """Build the context for the configured backend."""
    settings = settings or load_settings()
    if settings.uses_sql:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        settings.database_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_db_engine(settings.database_path)
        init_db(engine)
        datastore: DataStore = SqlDataStore(engine)
        logger.info("Using SQL data store at %s", settings.database_path)
    else:
        datastore = MemoryDataStore()
        logger.info("Using in-memory data store")
    return build_context(datastore, settings)
