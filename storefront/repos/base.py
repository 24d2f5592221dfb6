# storefront/repos/base.py
from typing import Any, Generic, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


class EntityStore(Generic[ModelT]):
    """
    Wspolne operacje dla jednego modelu, uzywane przez repo przez kompozycje.
    Nic tu nie robi commit - transakcja nalezy do serwisu.
    """

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model

    def get(self, entity_id: Any, options: Sequence = ()) -> ModelT | None:
        return self.db.get(self.model, entity_id, options=list(options))

    def get_fresh(self, entity_id: Any, for_update: bool = False) -> ModelT | None:
        #omija identity map, zawsze czyta aktualny stan z bazy (w ramach transakcji)
        stmt = select(self.model).where(self.model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def add(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        self.db.flush()
        return entity

    def flush(self) -> None:
        self.db.flush()
