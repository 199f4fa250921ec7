# -*- coding: utf-8 -*-
"""
comment.py
--------------------------------------------------------------------
维修帖评论（线程式）：
- parent_id 为空是根评论；非空时必须指向同一帖子下的另一条评论。
- 删除评论时其所有回复（按祖先链）一并删除，由 RecordService 的级联规则完成。
- 展示用的树由客户端 client.threads.build_thread 重建，服务端只存平铺记录。
"""


from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS


class Comment(TimestampMixin, db.Model):
    __tablename__ = "comment"
    __table_args__ = (
        db.Index("ix_comment_post_parent", "repair_post_id", "parent_id"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    repair_post_id = db.Column(
        db.Integer, db.ForeignKey("repair_post.id", ondelete="CASCADE"), nullable=False
    )
    parent_id = db.Column(db.Integer, db.ForeignKey("comment.id", ondelete="CASCADE"))
    content = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "repair_post_id": self.repair_post_id,
            "parent_id": self.parent_id,
            "content": self.content,
            **self.timestamps(),
        }
