"""CRUD 基类：为各实体提供通用的数据访问方法。"""

from typing import Any, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import IN_CLAUSE_CHUNK_SIZE
from app.packages.drive.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def chunked(values: Iterable[Any], size: int = IN_CLAUSE_CHUNK_SIZE) -> Iterable[List[Any]]:
    """按固定大小切分序列，供 ``IN (...)`` 查询分批使用。"""
    batch: List[Any] = []
    for value in values:
        batch.append(value)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class CRUDBase(Generic[ModelType]):
    """封装常见的查询、创建与保存逻辑，减少重复代码。

    方法默认不提交事务（``auto_commit=False``）：目录树的写操作需要由调用方
    在同一个事务里完成读取、校验与全部写入。
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any, *, for_update: bool = False) -> Optional[ModelType]:
        stmt = select(self.model).where(self.model.id == id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.execute(stmt).scalars().first()

    def create(self, db: Session, obj_in: Dict[str, Any], *, auto_commit: bool = False) -> ModelType:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = False) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def hard_delete_many(self, db: Session, ids: List[Any]) -> int:
        """物理删除一批行，返回受影响的行数。"""
        if not ids:
            return 0
        result = db.execute(
            delete(self.model)
            .where(self.model.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
