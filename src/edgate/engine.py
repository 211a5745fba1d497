"""Engine container: wires repositories, collaborators and locks into the services."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from edgate.access.evaluator import AccessEvaluator
from edgate.access.profiles import HttpProfileDirectory, InMemoryProfileDirectory, ProfileDirectory
from edgate.access.progress import ProgressTracker
from edgate.access.repository import (
    AccessRecordRepository,
    InMemoryAccessRecordRepository,
    SqlAccessRecordRepository,
)
from edgate.config import Settings
from edgate.content.repository import (
    ContentRepository,
    InMemoryContentRepository,
    SqlContentRepository,
)
from edgate.content.verification import VerificationService
from edgate.database import close_db, get_session_factory, init_db
from edgate.feedback.repository import (
    FeedbackRepository,
    InMemoryFeedbackRepository,
    SqlFeedbackRepository,
)
from edgate.feedback.service import FeedbackLedger
from edgate.integrations.blob_storage import BlobStorage, IpfsBlobStorage
from edgate.integrations.ledger import HttpLedgerClient, LedgerClient
from edgate.locks import KeyedLock, LocalKeyedLock, RedisKeyedLock
from edgate.redis_client import close_redis, get_redis, init_redis

logger = structlog.get_logger()


@dataclass
class Engine:
    """The four services plus whatever needs closing on shutdown."""

    verification: VerificationService
    access: AccessEvaluator
    progress: ProgressTracker
    feedback: FeedbackLedger
    profiles: ProfileDirectory
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in reversed(self.closers):
            await close()
        self.closers.clear()


def build_engine(
    *,
    ledger: LedgerClient,
    blobs: BlobStorage,
    content_repo: ContentRepository | None = None,
    access_repo: AccessRecordRepository | None = None,
    feedback_repo: FeedbackRepository | None = None,
    profiles: ProfileDirectory | None = None,
    locks: KeyedLock | None = None,
) -> Engine:
    """Assemble an engine. Anything not supplied gets its in-process default."""
    content_repo = content_repo or InMemoryContentRepository()
    access_repo = access_repo or InMemoryAccessRecordRepository()
    feedback_repo = feedback_repo or InMemoryFeedbackRepository()
    profiles = profiles or InMemoryProfileDirectory()
    locks = locks or LocalKeyedLock()

    return Engine(
        verification=VerificationService(content_repo, blobs, ledger, locks),
        access=AccessEvaluator(content_repo, access_repo, ledger, profiles, locks),
        progress=ProgressTracker(content_repo, access_repo, ledger, locks),
        feedback=FeedbackLedger(content_repo, feedback_repo),
        profiles=profiles,
    )


async def build_engine_from_settings(settings: Settings) -> Engine:
    """Build the production engine described by ``settings``.

    Resources opened before a failure are closed again before the error propagates.
    """
    closers: list[Callable[[], Awaitable[None]]] = []
    try:
        engine = await _assemble(settings, closers)
    except BaseException:
        for close in reversed(closers):
            await close()
        raise

    engine.closers = closers
    logger.info(
        "engine_started",
        storage_backend=settings.storage_backend,
        lock_backend=settings.lock_backend,
        profiles="http" if settings.profile_api_url else "memory",
    )
    return engine


async def _assemble(settings: Settings, closers: list[Callable[[], Awaitable[None]]]) -> Engine:
    if settings.storage_backend == "sql":
        await init_db(settings.database_url)
        closers.append(close_db)
        session_factory = get_session_factory()
        content_repo: ContentRepository = SqlContentRepository(session_factory)
        access_repo: AccessRecordRepository = SqlAccessRecordRepository(session_factory)
        feedback_repo: FeedbackRepository = SqlFeedbackRepository(session_factory)
    elif settings.storage_backend == "memory":
        content_repo = InMemoryContentRepository()
        access_repo = InMemoryAccessRecordRepository()
        feedback_repo = InMemoryFeedbackRepository()
    else:
        msg = f"Unknown storage backend: {settings.storage_backend!r}"
        raise ValueError(msg)

    if settings.lock_backend == "redis":
        await init_redis(settings.redis_url)
        closers.append(close_redis)
        locks: KeyedLock = RedisKeyedLock(
            get_redis(),
            timeout_seconds=settings.lock_timeout_seconds,
            blocking_timeout_seconds=settings.lock_blocking_timeout_seconds,
        )
    elif settings.lock_backend == "local":
        locks = LocalKeyedLock()
    else:
        msg = f"Unknown lock backend: {settings.lock_backend!r}"
        raise ValueError(msg)

    ledger = HttpLedgerClient(
        settings.ledger_base_url,
        api_key=settings.ledger_api_key,
        timeout=settings.ledger_timeout_seconds,
    )
    closers.append(ledger.aclose)
    blobs = IpfsBlobStorage(
        settings.blob_api_url,
        gateway_url=settings.blob_gateway_url,
        timeout=settings.blob_timeout_seconds,
    )
    closers.append(blobs.aclose)

    profiles: ProfileDirectory
    if settings.profile_api_url:
        http_profiles = HttpProfileDirectory(settings.profile_api_url, timeout=settings.profile_timeout_seconds)
        closers.append(http_profiles.aclose)
        profiles = http_profiles
    else:
        profiles = InMemoryProfileDirectory()

    return build_engine(
        ledger=ledger,
        blobs=blobs,
        content_repo=content_repo,
        access_repo=access_repo,
        feedback_repo=feedback_repo,
        profiles=profiles,
        locks=locks,
    )
