"""Extension lifecycle: startup wiring and shutdown.

Startup order:
    1. logging
    2. storage validation (the only step allowed to abort startup)
    3. backends, stores and providers, one per configured store
    4. library event subscriptions
    5. startup reconciliation

Shutdown waits for every provider's write queue to drain, then disposes the
database engine if the database backend was used.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from librarysync.application.services import (
    LibraryEventHandlers,
    ProviderRouter,
    ReconciliationReport,
    ReconciliationService,
)
from librarysync.config import Settings, get_settings
from librarysync.domain.exceptions import ConfigurationError
from librarysync.domain.ports import ILibraryClient, IStateBackend
from librarysync.infrastructure.observability import configure_logging
from librarysync.infrastructure.persistence import (
    Database,
    JsonFileBackend,
    ProviderStateStore,
    SqlStateBackend,
)
from librarysync.infrastructure.providers import (
    PersistentSyncProvider,
    SyncProviderRegistry,
)

logger = logging.getLogger(__name__)


def _validate_state_dir(settings: Settings) -> None:
    """Make sure the file backend can create and replace its JSON files.

    Raises:
        ConfigurationError: If the state directory cannot be created or written
    """
    state_dir = settings.storage.state_dir
    try:
        settings.ensure_directories()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create state directory '{state_dir}': {exc}. "
            "Update LIBRARYSYNC_STORAGE__STATE_DIR or adjust directory permissions."
        ) from exc

    # Atomic writes create a temp file next to the target, so probe the same way.
    try:
        test_file = state_dir / ".librarysync_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
        logger.debug("Verified write permissions for state directory: %s", state_dir)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in state directory '{state_dir}': {exc}. "
            "Ensure the directory is fully writable."
        ) from exc


def _validate_sqlite_path(settings: Settings) -> None:
    """Validate SQLite database path accessibility before engine creation.

    The database file itself is not pre-created; SQLite initializes it on
    first connection. Non-SQLite URLs are not checked.

    Raises:
        ConfigurationError: If the parent directory cannot be created or written
    """
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update LIBRARYSYNC_DATABASE__URL or adjust directory permissions."
        ) from exc

    # SQLite creates -journal / -wal files beside the database.
    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
        logger.debug("Verified directory write permissions for SQLite files: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


class SyncExtension:
    """The running sync engine for one host library.

    Example:
        extension = SyncExtension(library)
        report = await extension.start()
        ...
        await extension.stop()
    """

    def __init__(self, library: ILibraryClient, settings: Settings | None = None) -> None:
        self._library = library
        self._settings = settings or get_settings()
        self._database: Database | None = None
        self._started = False

        self.registry = SyncProviderRegistry()
        self.router = ProviderRouter(
            library,
            builtin_providers=self._settings.routing.builtin_providers,
            playlist_suffix=self._settings.routing.playlist_suffix,
        )
        self.events = LibraryEventHandlers(library, self.registry, self.router)
        self.reconciliation = ReconciliationService(
            library, self.registry, self.router, self._settings.package_namespace
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_started(self) -> bool:
        return self._started

    async def _build_backends(self) -> dict[str, IStateBackend]:
        storage = self._settings.storage
        if storage.backend == "file":
            _validate_state_dir(self._settings)
            return {
                store: JsonFileBackend(self._settings.store_path(store))
                for store in storage.stores
            }

        if storage.backend == "database":
            _validate_sqlite_path(self._settings)
            try:
                self._database = Database(self._settings)
                await self._database.create_tables()
            except SQLAlchemyError as exc:
                raise ConfigurationError(
                    f"Unable to initialize database '{self._settings.database.url}': {exc}"
                ) from exc
            logger.info("Database initialized: %s", self._settings.database.url)
            return {store: SqlStateBackend(self._database, store) for store in storage.stores}

        raise ConfigurationError(f"Unknown storage backend: {storage.backend!r}")

    async def start(self) -> ReconciliationReport:
        """Wire providers, subscribe to library events and reconcile.

        Raises:
            ConfigurationError: If storage cannot be used with the current settings
        """
        if self._started:
            raise RuntimeError("SyncExtension already started")

        settings = self._settings
        configure_logging(
            log_level=settings.log_level,
            json_format=settings.observability.log_json_format,
            app_name=settings.app_name,
        )
        logger.info("Starting %s (backend=%s)", settings.app_name, settings.storage.backend)

        # Hey future me - storage validation is the ONLY step allowed to abort
        # startup. Everything after this logs and carries on.
        try:
            backends = await self._build_backends()
        except ConfigurationError as e:
            logger.error("Storage validation failed: %s", e)
            raise

        for store, backend in backends.items():
            provider = PersistentSyncProvider(
                store, settings.package_namespace, ProviderStateStore(store, backend)
            )
            self.registry.register(provider)
            logger.debug("Provider '%s' persists to %s", store, backend.describe())

        self.events.register()
        self._started = True

        return await self.reconciliation.run()

    async def stop(self) -> None:
        """Flush pending writes and release the database engine."""
        try:
            await self.registry.wait_idle()
        finally:
            if self._database is not None:
                await self._database.close()
                self._database = None
                logger.info("Database connection closed")
            self._started = False
        logger.info("%s stopped", self._settings.app_name)


@asynccontextmanager
async def sync_extension(
    library: ILibraryClient, settings: Settings | None = None
) -> AsyncGenerator[SyncExtension, None]:
    """Run the extension for the duration of the block.

    Startup errors propagate; shutdown always runs once startup succeeded.
    """
    extension = SyncExtension(library, settings)
    await extension.start()
    try:
        yield extension
    finally:
        await extension.stop()
