from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import Boolean, DateTime, Integer, JSON, asc, desc, func, or_, select
from sqlalchemy.exc import IntegrityError

from extensions.database import db
from utils.datetime_helpers import parse_iso
from utils.exceptions import BizError
from utils.query_parser import FilterClause
from utils.response import parse_bool

logger = logging.getLogger(__name__)


def _coerce(column, raw: Any, field: str):
    """把查询字符串值转换为列类型。"""
    col_type = column.type
    try:
        if isinstance(col_type, Boolean):
            value = parse_bool(raw)
            if value is None:
                raise ValueError(raw)
            return value
        if isinstance(col_type, Integer):
            return int(raw)
        if isinstance(col_type, DateTime):
            # 库内存 UTC naive
            return parse_iso(raw).replace(tzinfo=None)
    except (TypeError, ValueError):
        raise BizError(f"过滤字段 {field} 的值非法: {raw}", 400)
    return raw


class RecordRepository:
    """
    通用集合的持久化读写（只关心 SQL，不做权限判断）。
    写操作只 flush，由上层 commit。
    """

    @staticmethod
    def _column(model, field: str, allowed: Sequence[str]):
        if field not in allowed:
            raise BizError(f"未知字段: {field}", 400)
        return model.__table__.columns[field]

    @staticmethod
    def build_conditions(model, filters: Iterable[FilterClause], allowed: Sequence[str]) -> list:
        conditions = []
        for clause in filters:
            column = RecordRepository._column(model, clause.field, allowed)
            if isinstance(column.type, JSON):
                raise BizError(f"字段 {clause.field} 不支持过滤", 400)
            attr = getattr(model, clause.field)
            op = clause.op
            if op == "is":
                if clause.value == "null":
                    conditions.append(attr.is_(None))
                else:
                    conditions.append(attr.is_(clause.value == "true"))
            elif op == "in":
                values = [_coerce(column, v, clause.field) for v in clause.value]
                conditions.append(attr.in_(values))
            elif op == "ilike":
                conditions.append(attr.ilike(clause.value))
            else:
                value = _coerce(column, clause.value, clause.field)
                if op == "eq":
                    conditions.append(attr == value)
                elif op == "neq":
                    conditions.append(attr != value)
                elif op == "gt":
                    conditions.append(attr > value)
                elif op == "gte":
                    conditions.append(attr >= value)
                elif op == "lt":
                    conditions.append(attr < value)
                elif op == "lte":
                    conditions.append(attr <= value)
        return conditions

    @staticmethod
    def search_condition(model, fields: Sequence[str], text: Optional[str]):
        if not text or not fields:
            return None
        pattern = f"%{text}%"
        return or_(*[getattr(model, f).ilike(pattern) for f in fields])

    @staticmethod
    def list(
        model,
        conditions: list,
        order: Sequence[Tuple[str, bool]],
        allowed: Sequence[str],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Any]:
        stmt = select(model)
        if conditions:
            stmt = stmt.where(*conditions)
        seen = set()
        for field, is_desc in order:
            RecordRepository._column(model, field, allowed)
            stmt = stmt.order_by(desc(getattr(model, field)) if is_desc else asc(getattr(model, field)))
            seen.add(field)
        if "id" not in seen:
            # 同一时间戳的记录按 id 打破平局，保证顺序稳定
            stmt = stmt.order_by(asc(model.id))
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return list(db.session.execute(stmt).scalars().all())

    @staticmethod
    def count(model, conditions: list) -> int:
        stmt = select(func.count(model.id))
        if conditions:
            stmt = stmt.where(*conditions)
        return db.session.execute(stmt).scalar() or 0

    @staticmethod
    def get_by_id(model, record_id) -> Optional[Any]:
        try:
            return db.session.get(model, int(record_id))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def find_one(model, **criteria) -> Optional[Any]:
        return model.query.filter_by(**criteria).first()

    @staticmethod
    def create(model, values: Dict[str, Any]):
        record = model(**values)
        db.session.add(record)
        db.session.flush()
        return record

    @staticmethod
    def update(record, values: Dict[str, Any]):
        for key, value in values.items():
            setattr(record, key, value)
        db.session.flush()
        return record

    @staticmethod
    def delete(record):
        db.session.delete(record)
        db.session.flush()

    @staticmethod
    def descendant_ids(model, parent_field: str, root_id: int) -> List[int]:
        """按自引用字段逐层收集后代 ID（不含自身），返回从浅到深的顺序。"""
        parent_attr = getattr(model, parent_field)
        result: List[int] = []
        seen: Set[int] = {root_id}
        frontier = [root_id]
        while frontier:
            rows = db.session.execute(
                select(model.id).where(parent_attr.in_(frontier))
            ).scalars().all()
            frontier = [rid for rid in rows if rid not in seen]
            seen.update(frontier)
            result.extend(frontier)
        return result

    @staticmethod
    def delete_by_ids(model, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        affected = model.query.filter(model.id.in_(list(ids))).delete(synchronize_session=False)
        db.session.flush()
        return affected

    @staticmethod
    def count_grouped(model, group_field: str, ids: Sequence[int]) -> Dict[int, int]:
        if not ids:
            return {}
        attr = getattr(model, group_field)
        rows = db.session.execute(
            select(attr, func.count(model.id)).where(attr.in_(list(ids))).group_by(attr)
        ).all()
        return {gid: cnt for gid, cnt in rows}

    @staticmethod
    def related_ids_for_actor(model, group_field: str, ids: Sequence[int], actor_field: str, actor_id: int) -> Set[int]:
        if not ids:
            return set()
        attr = getattr(model, group_field)
        rows = db.session.execute(
            select(attr).where(attr.in_(list(ids)), getattr(model, actor_field) == actor_id)
        ).scalars().all()
        return set(rows)

    @staticmethod
    def count_created_since(model, since: datetime) -> List[Tuple[Any, int]]:
        day = func.date(model.created_at)
        return db.session.execute(
            select(day, func.count(model.id)).where(model.created_at >= since).group_by(day).order_by(day)
        ).all()

    @staticmethod
    def commit():
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def rollback():
        db.session.rollback()
