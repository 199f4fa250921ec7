# -*- coding: utf-8 -*-
"""
collection_policy.py
--------------------------------------------------------------------
通用集合（/api/records/<collection>）的访问策略登记表。
每个集合声明：
- 对应模型、所有者字段（插入时强制写为当前用户）
- 可插入/可更新字段白名单，仅管理员可写的字段
- 读取范围：public（公开）/ owner（仅本人）/ admin（仅管理员）
- 是否允许帖子作者删除指向其帖子的记录（评论、点赞、收藏）
- 删除时需要一并删除的自引用子记录（评论的回复）
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from models import (
    Bookmark,
    Category,
    Comment,
    Follow,
    Guide,
    Notification,
    RepairPost,
    Report,
    User,
    Vote,
)
from utils.exceptions import BizError

READ_PUBLIC = "public"
READ_OWNER = "owner"
READ_ADMIN = "admin"

# (字段, 是否倒序)
NEWEST_FIRST = (("created_at", True), ("id", True))
OLDEST_FIRST = (("created_at", False), ("id", False))


@dataclass(frozen=True)
class CollectionPolicy:
    name: str
    model: type
    owner_field: Optional[str] = "user_id"
    insertable: Tuple[str, ...] = ()
    updatable: Tuple[str, ...] = ()
    admin_fields: Tuple[str, ...] = ()
    required: Tuple[str, ...] = ()
    searchable: Tuple[str, ...] = ()
    hidden: Tuple[str, ...] = ()
    # 仅本人与管理员可见、可过滤的字段
    private: Tuple[str, ...] = ()
    read_scope: str = READ_PUBLIC
    admin_write: bool = False
    allow_insert: bool = True
    allow_delete: bool = True
    owner_can_modify: bool = True
    post_owner_delete: bool = False
    self_parent_field: Optional[str] = None
    default_order: Tuple[Tuple[str, bool], ...] = NEWEST_FIRST

    def columns(self, include_private: bool = True) -> Tuple[str, ...]:
        excluded = self.hidden if include_private else self.hidden + self.private
        return tuple(c.name for c in self.model.__table__.columns if c.name not in excluded)

    def writable_fields(self, admin: bool, for_update: bool) -> Tuple[str, ...]:
        base = self.updatable if for_update else self.insertable
        return base + self.admin_fields if admin else base


COLLECTIONS: Dict[str, CollectionPolicy] = {
    "profiles": CollectionPolicy(
        name="profiles",
        model=User,
        owner_field="id",
        updatable=("username", "bio", "avatar_url"),
        admin_fields=("is_admin", "is_banned"),
        searchable=("username",),
        hidden=("password_hash", "password_version", "password_updated_at"),
        private=("email",),
        allow_insert=False,
        allow_delete=False,
    ),
    "categories": CollectionPolicy(
        name="categories",
        model=Category,
        owner_field=None,
        insertable=("name", "icon"),
        updatable=("name", "icon"),
        required=("name",),
        searchable=("name",),
        admin_write=True,
        default_order=(("name", False), ("id", False)),
    ),
    "repair_posts": CollectionPolicy(
        name="repair_posts",
        model=RepairPost,
        insertable=("item_name", "issue_description", "repair_steps", "success", "images", "category_id"),
        updatable=("item_name", "issue_description", "repair_steps", "success", "images", "category_id"),
        required=("item_name",),
        searchable=("item_name", "issue_description"),
    ),
    "comments": CollectionPolicy(
        name="comments",
        model=Comment,
        insertable=("repair_post_id", "parent_id", "content"),
        updatable=("content",),
        required=("repair_post_id", "content"),
        searchable=("content",),
        post_owner_delete=True,
        self_parent_field="parent_id",
        default_order=OLDEST_FIRST,
    ),
    "guides": CollectionPolicy(
        name="guides",
        model=Guide,
        insertable=("item_name", "guide_content"),
        updatable=("item_name", "guide_content"),
        required=("item_name", "guide_content"),
        searchable=("item_name", "guide_content"),
    ),
    "votes": CollectionPolicy(
        name="votes",
        model=Vote,
        insertable=("repair_post_id",),
        required=("repair_post_id",),
        post_owner_delete=True,
    ),
    "bookmarks": CollectionPolicy(
        name="bookmarks",
        model=Bookmark,
        insertable=("repair_post_id",),
        required=("repair_post_id",),
        post_owner_delete=True,
    ),
    "follows": CollectionPolicy(
        name="follows",
        model=Follow,
        owner_field="follower_id",
        insertable=("following_id",),
        required=("following_id",),
    ),
    "reports": CollectionPolicy(
        name="reports",
        model=Report,
        owner_field="reporter_id",
        insertable=("target_type", "target_id", "reason", "description"),
        admin_fields=("status",),
        required=("target_type", "target_id", "reason"),
        read_scope=READ_ADMIN,
        owner_can_modify=False,
    ),
    "notifications": CollectionPolicy(
        name="notifications",
        model=Notification,
        updatable=("is_read",),
        read_scope=READ_OWNER,
        allow_insert=False,
    ),
}

# 每个 (actor, target) 至多一条的开关型关系：集合 -> (actor 字段, target 字段)
UNIQUE_RELATIONS: Dict[str, Tuple[str, str]] = {
    "votes": ("user_id", "repair_post_id"),
    "bookmarks": ("user_id", "repair_post_id"),
    "follows": ("follower_id", "following_id"),
}


def get_policy(collection: str) -> CollectionPolicy:
    policy = COLLECTIONS.get(collection)
    if policy is None:
        raise BizError(f"未知集合: {collection}", 404)
    return policy
