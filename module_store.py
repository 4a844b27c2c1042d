"""
SQLAlchemy-backed storage for course module documents.

One row per module, keyed by the slug derived from the course title. The
nested submodule/section tree is stored as a JSON column so every upload
replaces the whole document in a single write.
"""
import logging
from typing import List

from sqlalchemy import Column, Integer, String, Text, JSON, TIMESTAMP, create_engine, func, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from schemas import Module, Submodule

logger = logging.getLogger(__name__)

Base = declarative_base()


class ModuleStoreError(Exception):
    """Raised when the storage backend fails a read or write."""


class ModuleRecord(Base):
    """Persisted course module document."""

    __tablename__ = 'course_modules'

    id = Column(Integer, primary_key=True, autoincrement=True, nullable=False)
    module_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment='Slug derived from the course title'
    )
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    banner_image = Column(Text, nullable=False)
    total_submodules = Column(Integer, nullable=False, default=0)
    total_time = Column(Integer, nullable=False, default=0)
    submodules = Column(
        JSON,
        nullable=False,
        default=list,
        comment='Ordered submodules with their sections'
    )
    updated_at = Column(
        TIMESTAMP,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def to_module(self) -> Module:
        return Module(
            id=self.id,
            module_id=self.module_id,
            title=self.title,
            description=self.description,
            banner_image=self.banner_image,
            submodules=[Submodule.model_validate(item) for item in self.submodules or []],
            total_submodules=self.total_submodules,
            total_time=self.total_time,
        )

    def __repr__(self):
        return f"<ModuleRecord(id={self.id}, module_id='{self.module_id}')>"


class ModuleStore:
    """
    Storage collaborator for module documents.

    The store is created once at startup and handed to request handlers as a
    dependency. Each operation uses its own short-lived session.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "ModuleStore":
        """
        Build a store from a SQLAlchemy database URL.

        SQLite connections are shared across threads; in-memory SQLite uses a
        single static connection so every session sees the same database.
        """
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        return cls(create_engine(database_url, **engine_kwargs))

    def create_schema(self):
        Base.metadata.create_all(bind=self.engine)

    def ping(self):
        """Check the backend is reachable; raises ModuleStoreError otherwise."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Storage backend unreachable: {e}") from e

    def _find_record(self, session, module_id: str):
        return session.query(ModuleRecord).filter_by(module_id=module_id).first()

    def upsert_by_key(self, module_id: str, module: Module) -> Module:
        """
        Insert the module, or fully replace the stored one with the same key.

        When another writer inserts the same key between our lookup and our
        insert, the unique constraint rejects the insert; the write is then
        repeated once as a replace, so the last writer wins.

        Args:
            module_id: Storage key (slug)
            module: Document to store

        Returns:
            Module: The stored document as read back after the write

        Raises:
            ModuleStoreError: If the write fails
        """
        for attempt in range(2):
            session = self.session_factory()
            try:
                record = self._write(session, module_id, module)
                session.commit()
                session.refresh(record)
                return record.to_module()
            except IntegrityError as e:
                session.rollback()
                if attempt == 0:
                    logger.info("Module inserted concurrently, retrying as replace", extra={"module_id": module_id})
                    continue
                logger.error("Module upsert failed", extra={"module_id": module_id, "error": str(e)})
                raise ModuleStoreError(f"Failed to upsert module '{module_id}': {e}") from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(
                    "Module upsert failed",
                    extra={"module_id": module_id, "error": str(e), "error_type": type(e).__name__}
                )
                raise ModuleStoreError(f"Failed to upsert module '{module_id}': {e}") from e
            finally:
                session.close()

    def _write(self, session, module_id: str, module: Module) -> ModuleRecord:
        record = self._find_record(session, module_id)
        if record is None:
            record = ModuleRecord(module_id=module_id)
            session.add(record)
            logger.info("Inserting new module", extra={"module_id": module_id})
        else:
            if record.title != module.title:
                # Different titles normalizing to the same slug overwrite each other
                logger.warning(
                    f"Slug collision: '{module.title}' replaces stored module '{record.title}'",
                    extra={"module_id": module_id}
                )
            logger.info("Replacing stored module", extra={"module_id": module_id, "record_id": record.id})

        record.title = module.title
        record.description = module.description
        record.banner_image = module.banner_image
        record.total_submodules = module.total_submodules
        record.total_time = module.total_time
        record.submodules = [submodule.model_dump(by_alias=True) for submodule in module.submodules]
        session.flush()
        return record

    def find_all(self) -> List[Module]:
        """Return every stored module in primary key order."""
        session = self.session_factory()
        try:
            records = session.query(ModuleRecord).order_by(ModuleRecord.id).all()
            return [record.to_module() for record in records]
        except SQLAlchemyError as e:
            logger.error("Module listing failed", extra={"error": str(e), "error_type": type(e).__name__})
            raise ModuleStoreError(f"Failed to list modules: {e}") from e
        finally:
            session.close()
