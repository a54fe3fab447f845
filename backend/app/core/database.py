"""
Scene record persistence.

Provides write-once storage for SceneRecords keyed by their share id:
- SupabaseSceneStore: the ``ar_experiences`` Postgres table via Supabase
- InMemorySceneStore: a process-local dict for development and tests

Neither backend exposes update or delete.
"""

import threading
import uuid
from typing import Callable, Dict, Optional

from postgrest.exceptions import APIError

from app.core.config import settings
from app.core.errors import DuplicateIdError, SceneNotFoundError
from app.core.logger import get_logger
from app.core.supabase_client import get_supabase
from app.models.scene_record import SceneRecord

logger = get_logger(__name__)

UNIQUE_VIOLATION = "23505"


def new_scene_id() -> str:
    return str(uuid.uuid4())


class SceneStore:
    """
    Base class for scene stores.

    Subclasses implement ``_insert`` (raising DuplicateIdError on collision,
    never overwriting) and ``get_by_id``.
    """

    def __init__(self, id_factory: Callable[[], str] = new_scene_id):
        self.id_factory = id_factory

    def create(self, record: SceneRecord) -> str:
        """
        Persist a new record and return its id.

        A generated id that collides is regenerated once; a caller-supplied
        id that collides raises DuplicateIdError.
        """
        if record.id:
            return self._insert(record)

        try:
            return self._insert(record.model_copy(update={"id": self.id_factory()}))
        except DuplicateIdError as e:
            logger.warning(f"Generated scene id collided ({e.detail}); regenerating once")
            return self._insert(record.model_copy(update={"id": self.id_factory()}))

    def _insert(self, record: SceneRecord) -> str:
        raise NotImplementedError

    def get_by_id(self, scene_id: str) -> SceneRecord:
        raise NotImplementedError


class SupabaseSceneStore(SceneStore):
    """Scene records in a Supabase table with a unique ``unique_id`` column."""

    def __init__(self, table: str = None, id_factory: Callable[[], str] = new_scene_id):
        super().__init__(id_factory)
        self.table = table or settings.SCENE_TABLE

    def _insert(self, record: SceneRecord) -> str:
        supabase = get_supabase()
        try:
            supabase.table(self.table).insert(record.to_row()).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateIdError(f"Scene {record.id} already exists") from e
            raise

        logger.info(f"Created scene {record.id}")
        return record.id

    def get_by_id(self, scene_id: str) -> SceneRecord:
        supabase = get_supabase()
        response = supabase.table(self.table)\
            .select("*")\
            .eq("unique_id", scene_id)\
            .limit(1)\
            .execute()

        if not response.data:
            raise SceneNotFoundError(f"Scene {scene_id} not found")
        return SceneRecord.from_row(response.data[0])


class InMemorySceneStore(SceneStore):
    """Dict-backed store; records are immutable so only inserts need the lock."""

    def __init__(self, id_factory: Callable[[], str] = new_scene_id):
        super().__init__(id_factory)
        self._records: Dict[str, SceneRecord] = {}
        self._lock = threading.Lock()

    def _insert(self, record: SceneRecord) -> str:
        with self._lock:
            if record.id in self._records:
                raise DuplicateIdError(f"Scene {record.id} already exists")
            self._records[record.id] = record
        logger.info(f"Created scene {record.id} (memory)")
        return record.id

    def get_by_id(self, scene_id: str) -> SceneRecord:
        record = self._records.get(scene_id)
        if record is None:
            raise SceneNotFoundError(f"Scene {scene_id} not found")
        return record

    def __len__(self) -> int:
        return len(self._records)


_scene_store: Optional[SceneStore] = None


def build_scene_store(backend: str = None) -> SceneStore:
    backend = (backend or settings.SCENE_STORE_BACKEND).lower()
    if backend == "memory":
        return InMemorySceneStore()
    if backend == "supabase":
        return SupabaseSceneStore()
    raise ValueError(f"Unknown SCENE_STORE_BACKEND: {backend}")


def get_scene_store() -> SceneStore:
    """FastAPI dependency returning the process-wide scene store."""
    global _scene_store
    if _scene_store is None:
        _scene_store = build_scene_store()
    return _scene_store
