# services/record_service.py
"""
通用集合服务：/api/records/<collection> 的业务规则都在这里。

- 读取：按集合的 read_scope 限定可见范围，repair_posts 附加点赞数/评论数等聚合字段
- 写入：登录且未封禁；所有者字段强制为当前用户；字段白名单；必填校验；按集合的业务校验
- 修改/删除：所有者、管理员，或（评论/点赞/收藏的删除）被指向帖子的作者
- 删除评论时级联删除其全部回复
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import Boolean, Integer, JSON
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from constants.moderation import validate_report_payload, validate_report_status
from models import Bookmark, Category, Comment, RepairPost, User, Vote
from repositories.record_repository import RecordRepository
from repositories.user_repository import UserRepository
from services.collection_policy import (
    READ_ADMIN,
    READ_OWNER,
    UNIQUE_RELATIONS,
    CollectionPolicy,
    get_policy,
)
from services.notification_service import NotificationService
from utils.exceptions import BizError, conflict, forbidden, not_found
from utils.permissions import assert_admin, assert_can_write, is_admin, is_owner
from utils.query_parser import RecordQuery
from utils.response import parse_bool
from utils.validators import validate_url, validate_username

logger = logging.getLogger(__name__)

# 客户端常会回传这些字段，写入时直接忽略
_IGNORED_WRITE_FIELDS = ("id", "created_at", "updated_at")


class RecordService:

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------
    @staticmethod
    def _scope_conditions(policy: CollectionPolicy, user) -> list:
        if policy.read_scope == READ_ADMIN:
            if user is None:
                raise BizError("请先登录", 401)
            assert_admin(user)
            return []
        if policy.read_scope == READ_OWNER:
            if user is None:
                raise BizError("请先登录", 401)
            return [getattr(policy.model, policy.owner_field) == user.id]
        return []

    @staticmethod
    def _conditions(policy: CollectionPolicy, query: RecordQuery, user) -> list:
        allowed = policy.columns(include_private=is_admin(user))
        conditions = RecordService._scope_conditions(policy, user)
        conditions += RecordRepository.build_conditions(policy.model, query.filters, allowed)
        search = RecordRepository.search_condition(policy.model, policy.searchable, query.search)
        if search is not None:
            conditions.append(search)
        return conditions

    @staticmethod
    def _limit(query: RecordQuery) -> int:
        cfg = current_app.config
        limit = query.limit or cfg["RECORDS_DEFAULT_LIMIT"]
        return min(limit, cfg["RECORDS_MAX_LIMIT"])

    @staticmethod
    def select(collection: str, query: RecordQuery, user=None) -> List[dict]:
        policy = get_policy(collection)
        conditions = RecordService._conditions(policy, query, user)
        order = query.order or list(policy.default_order)
        records = RecordRepository.list(
            policy.model,
            conditions,
            order,
            allowed=policy.columns(include_private=is_admin(user)),
            limit=RecordService._limit(query),
            offset=query.offset,
        )
        return RecordService._serialize_many(policy, records, user)

    @staticmethod
    def count(collection: str, query: RecordQuery, user=None) -> int:
        policy = get_policy(collection)
        return RecordRepository.count(policy.model, RecordService._conditions(policy, query, user))

    @staticmethod
    def _load(policy: CollectionPolicy, record_id, user):
        RecordService._scope_conditions(policy, user)
        record = RecordRepository.get_by_id(policy.model, record_id)
        if record is None:
            raise not_found("记录")
        if policy.read_scope == READ_OWNER and not is_owner(user, getattr(record, policy.owner_field)):
            # 不暴露他人记录的存在
            raise not_found("记录")
        return record

    @staticmethod
    def get(collection: str, record_id, user=None) -> dict:
        policy = get_policy(collection)
        record = RecordService._load(policy, record_id, user)
        return RecordService._serialize_many(policy, [record], user)[0]

    # ------------------------------------------------------------------
    # 序列化与聚合
    # ------------------------------------------------------------------
    @staticmethod
    def _serialize_many(policy: CollectionPolicy, records: list, user) -> List[dict]:
        items = []
        admin = is_admin(user)
        for record in records:
            data = record.to_dict()
            if policy.private and not admin and not is_owner(user, getattr(record, policy.owner_field)):
                for key in policy.private:
                    data.pop(key, None)
            items.append(data)
        if policy.model is RepairPost and items:
            RecordService._enrich_posts(items, user)
        return items

    @staticmethod
    def _enrich_posts(items: List[dict], user) -> None:
        """附加 vote_count / comment_count / user_has_voted / user_has_bookmarked（分组查询，避免 N+1）。"""
        ids = [item["id"] for item in items]
        votes = RecordRepository.count_grouped(Vote, "repair_post_id", ids)
        comments = RecordRepository.count_grouped(Comment, "repair_post_id", ids)
        voted, bookmarked = set(), set()
        if user is not None:
            voted = RecordRepository.related_ids_for_actor(Vote, "repair_post_id", ids, "user_id", user.id)
            bookmarked = RecordRepository.related_ids_for_actor(Bookmark, "repair_post_id", ids, "user_id", user.id)
        for item in items:
            pid = item["id"]
            item["vote_count"] = votes.get(pid, 0)
            item["comment_count"] = comments.get(pid, 0)
            item["user_has_voted"] = pid in voted
            item["user_has_bookmarked"] = pid in bookmarked

    # ------------------------------------------------------------------
    # 写入辅助
    # ------------------------------------------------------------------
    @staticmethod
    def _pick_fields(policy: CollectionPolicy, payload: Dict[str, Any], user, for_update: bool) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise BizError("请求体必须为 JSON 对象", 400)
        writable = policy.writable_fields(admin=is_admin(user), for_update=for_update)
        known = policy.columns()
        values = {}
        for key, value in payload.items():
            if key in _IGNORED_WRITE_FIELDS or key == policy.owner_field:
                continue
            if key not in known:
                raise BizError(f"未知字段: {key}", 400)
            if key not in writable:
                raise forbidden(f"字段 {key} 不允许写入")
            values[key] = value
        return RecordService._coerce_values(policy.model, values)

    @staticmethod
    def _coerce_values(model, values: Dict[str, Any]) -> Dict[str, Any]:
        columns = model.__table__.columns
        result = {}
        for key, value in values.items():
            col_type = columns[key].type
            if value is None:
                result[key] = None
                continue
            if isinstance(col_type, Boolean):
                coerced = parse_bool(value)
                if coerced is None:
                    raise BizError(f"字段 {key} 必须为布尔值", 400)
                result[key] = coerced
            elif isinstance(col_type, Integer):
                try:
                    result[key] = int(value)
                except (TypeError, ValueError):
                    raise BizError(f"字段 {key} 必须为整数", 400)
            elif isinstance(col_type, JSON):
                result[key] = value
            else:
                if not isinstance(value, str):
                    raise BizError(f"字段 {key} 必须为字符串", 400)
                result[key] = value.strip()
        return result

    @staticmethod
    def _check_required(policy: CollectionPolicy, values: Dict[str, Any], partial: bool) -> None:
        for name in policy.required:
            if partial and name not in values:
                continue
            if values.get(name) in (None, ""):
                raise BizError(f"{name} 不能为空", 400)

    @staticmethod
    def _require_post(post_id) -> RepairPost:
        post = RecordRepository.get_by_id(RepairPost, post_id)
        if post is None:
            raise not_found("帖子")
        return post

    # ------------------------------------------------------------------
    # 按集合的业务校验
    # ------------------------------------------------------------------
    @staticmethod
    def _validate(collection: str, values: Dict[str, Any], user, record=None) -> None:
        validator = getattr(RecordService, f"_validate_{collection}", None)
        if validator:
            validator(values, user, record)

    @staticmethod
    def _validate_repair_posts(values, user, record):
        if values.get("category_id") is not None:
            if RecordRepository.get_by_id(Category, values["category_id"]) is None:
                raise BizError("分类不存在", 400)
        if "images" in values:
            images = values["images"] or []
            if not isinstance(images, list) or not all(isinstance(u, str) and validate_url(u) for u in images):
                raise BizError("images 必须为图片地址列表", 400)
            values["images"] = images

    @staticmethod
    def _validate_comments(values, user, record):
        if record is not None:
            return
        post = RecordService._require_post(values["repair_post_id"])
        parent_id = values.get("parent_id")
        if parent_id is not None:
            parent = RecordRepository.get_by_id(Comment, parent_id)
            if parent is None:
                raise not_found("父评论")
            if parent.repair_post_id != post.id:
                raise BizError("父评论不属于同一帖子", 400)

    @staticmethod
    def _validate_votes(values, user, record):
        RecordService._require_post(values["repair_post_id"])

    _validate_bookmarks = _validate_votes

    @staticmethod
    def _validate_follows(values, user, record):
        target_id = values["following_id"]
        if target_id == user.id:
            raise BizError("不能关注自己", 400)
        if UserRepository.find_by_id(target_id) is None:
            raise not_found("用户")

    @staticmethod
    def _validate_reports(values, user, record):
        if record is None:
            validate_report_payload(values)
        validate_report_status(values.get("status"))

    @staticmethod
    def _validate_profiles(values, user, record):
        if "username" in values:
            username = values["username"]
            if not validate_username(username):
                raise BizError("用户名需为 3-30 位字母、数字、下划线或短横线", 400)
            existing = UserRepository.find_by_username(username)
            if existing is not None and existing.id != record.id:
                raise conflict("用户名已被占用")
        if values.get("avatar_url") and not validate_url(values["avatar_url"]):
            raise BizError("头像地址格式不正确", 400)
        if record.id == user.id and ("is_admin" in values or "is_banned" in values):
            raise BizError("不能修改自己的管理员或封禁状态", 400)

    @staticmethod
    def _check_unique_relation(collection: str, values: Dict[str, Any]) -> None:
        fields = UNIQUE_RELATIONS.get(collection)
        if not fields:
            return
        policy = get_policy(collection)
        criteria = {name: values.get(name) for name in fields}
        if RecordRepository.find_one(policy.model, **criteria) is not None:
            raise conflict("关系已存在")

    @staticmethod
    def _commit(collection: str):
        try:
            RecordRepository.commit()
        except IntegrityError as e:
            logger.warning(f"写入 {collection} 违反唯一约束: {e.orig}")
            raise conflict("记录已存在")
        except SQLAlchemyError:
            RecordRepository.rollback()
            logger.exception(f"写入 {collection} 失败")
            raise BizError("数据库错误", 500)

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------
    @staticmethod
    def insert(collection: str, payload: Dict[str, Any], user) -> dict:
        policy = get_policy(collection)
        assert_can_write(user)
        if not policy.allow_insert:
            raise forbidden(f"{collection} 不允许直接创建")
        if policy.admin_write:
            assert_admin(user)

        values = RecordService._pick_fields(policy, payload, user, for_update=False)
        if policy.owner_field:
            values[policy.owner_field] = user.id
        RecordService._check_required(policy, values, partial=False)
        RecordService._validate(collection, values, user)
        RecordService._check_unique_relation(collection, values)

        try:
            record = RecordRepository.create(policy.model, values)
            NotificationService.after_insert(collection, record)
        except IntegrityError as e:
            RecordRepository.rollback()
            logger.warning(f"插入 {collection} 违反唯一约束: {e.orig}")
            raise conflict("记录已存在")
        RecordService._commit(collection)
        logger.info(f"{collection} 已创建 id={record.id} by user={user.id}")
        return RecordService._serialize_many(policy, [record], user)[0]

    @staticmethod
    def _can_modify(policy: CollectionPolicy, record, user) -> bool:
        if is_admin(user):
            return True
        if policy.admin_write or not policy.owner_can_modify or not policy.owner_field:
            return False
        return is_owner(user, getattr(record, policy.owner_field))

    @staticmethod
    def update(collection: str, record_id, payload: Dict[str, Any], user) -> dict:
        policy = get_policy(collection)
        assert_can_write(user)
        record = RecordService._load(policy, record_id, user)
        if not RecordService._can_modify(policy, record, user):
            raise forbidden("只能修改自己的内容")

        values = RecordService._pick_fields(policy, payload, user, for_update=True)
        if not values:
            return RecordService._serialize_many(policy, [record], user)[0]
        RecordService._check_required(policy, values, partial=True)
        RecordService._validate(collection, values, user, record=record)

        try:
            RecordRepository.update(record, values)
        except IntegrityError as e:
            RecordRepository.rollback()
            logger.warning(f"更新 {collection} 违反唯一约束: {e.orig}")
            raise conflict("记录已存在")
        RecordService._commit(collection)
        logger.info(f"{collection} 已更新 id={record.id} fields={sorted(values)} by user={user.id}")
        return RecordService._serialize_many(policy, [record], user)[0]

    @staticmethod
    def _can_delete(policy: CollectionPolicy, record, user) -> bool:
        if RecordService._can_modify(policy, record, user):
            return True
        if policy.post_owner_delete:
            post = RecordRepository.get_by_id(RepairPost, record.repair_post_id)
            return post is not None and is_owner(user, post.user_id)
        return False

    @staticmethod
    def delete(collection: str, record_id, user) -> None:
        policy = get_policy(collection)
        assert_can_write(user)
        if not policy.allow_delete:
            raise forbidden(f"{collection} 不允许删除")
        record = RecordService._load(policy, record_id, user)
        if not RecordService._can_delete(policy, record, user):
            raise forbidden("只能删除自己的内容")

        cascaded = 0
        if policy.self_parent_field:
            descendants = RecordRepository.descendant_ids(policy.model, policy.self_parent_field, record.id)
            # 从最深层开始删，避免外键指向已删除的父记录
            for rid in reversed(descendants):
                cascaded += RecordRepository.delete_by_ids(policy.model, [rid])
        RecordRepository.delete(record)
        RecordService._commit(collection)
        logger.info(f"{collection} 已删除 id={record_id} cascaded={cascaded} by user={user.id}")
