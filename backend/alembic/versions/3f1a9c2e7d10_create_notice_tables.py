"""创建用户目录与通知公告相关表

Revision ID: 3f1a9c2e7d10
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1a9c2e7d10'
down_revision = None
branch_labels = None
depends_on = None


def _notice_fk():
    return sa.ForeignKey('notices.id', ondelete='CASCADE')


def upgrade() -> None:
    # 用户目录
    op.create_table(
        'sys_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False, comment='邮箱'),
        sa.Column('first_name', sa.String(50), nullable=False, comment='名'),
        sa.Column('last_name', sa.String(50), nullable=False, comment='姓'),
        sa.Column('role', sa.String(20), nullable=False, comment='角色：admin/faculty/staff/student'),
        sa.Column('department', sa.String(100), nullable=True, comment='所属院系'),
        sa.Column('year_level', sa.String(20), nullable=True, comment='年级: first/second/third/fourth/fifth/graduate'),
        sa.Column('is_active', sa.Boolean(), nullable=False, comment='是否启用'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        comment='校园用户目录'
    )
    op.create_index('ix_sys_users_email', 'sys_users', ['email'], unique=True)
    op.create_index('ix_sys_users_role', 'sys_users', ['role'])

    # 通知主表
    op.create_table(
        'notices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('title', sa.String(200), nullable=False, comment='标题'),
        sa.Column('content', sa.Text(), nullable=False, comment='正文'),
        sa.Column('summary', sa.String(500), nullable=True, comment='摘要'),
        sa.Column('type', sa.String(20), nullable=False, comment='类型'),
        sa.Column('category', sa.String(20), nullable=False, comment='面向群体'),
        sa.Column('priority', sa.String(10), nullable=False, comment='优先级: low/medium/high/urgent'),
        sa.Column('status', sa.String(20), nullable=False, comment='状态: draft/published/archived/expired'),
        sa.Column('visibility', sa.String(20), nullable=False, comment='可见性: public/private/restricted'),
        sa.Column('publish_date', sa.DateTime(timezone=True), nullable=False, comment='发布时间'),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True, comment='过期时间'),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=True, comment='生效时间'),
        sa.Column('author_id', sa.Integer(), nullable=False, comment='作者ID'),
        sa.Column('author_name', sa.String(120), nullable=False, comment='作者姓名（快照）'),
        sa.Column('author_email', sa.String(255), nullable=False, comment='作者邮箱（快照）'),
        sa.Column('author_role', sa.String(20), nullable=False, comment='作者角色（快照）'),
        sa.Column('attachments', sa.JSON(), nullable=False, comment='附件列表'),
        sa.Column('images', sa.JSON(), nullable=False, comment='图片列表'),
        sa.Column('tags', sa.JSON(), nullable=False, comment='标签'),
        sa.Column('related_notices', sa.JSON(), nullable=False, comment='相关通知ID'),
        sa.Column('contact_info', sa.JSON(), nullable=True, comment='联系方式'),
        sa.Column('location', sa.JSON(), nullable=True, comment='地点'),
        sa.Column('language', sa.String(10), nullable=False, comment='语言'),
        sa.Column('views', sa.Integer(), nullable=False, comment='浏览次数'),
        sa.Column('unique_views', sa.Integer(), nullable=False, comment='独立访客数'),
        sa.Column('downloads', sa.Integer(), nullable=False, comment='下载次数'),
        sa.Column('shares', sa.Integer(), nullable=False, comment='分享次数'),
        sa.Column('allow_comments', sa.Boolean(), nullable=False, comment='允许评论'),
        sa.Column('require_acknowledgement', sa.Boolean(), nullable=False, comment='需要确认阅读'),
        sa.Column('send_notification', sa.Boolean(), nullable=False, comment='发布时推送通知'),
        sa.Column('pin_to_top', sa.Boolean(), nullable=False, comment='置顶'),
        sa.Column('featured', sa.Boolean(), nullable=False, comment='精选'),
        sa.Column('version', sa.Integer(), nullable=False, comment='版本号（乐观锁）'),
        sa.Column('last_modified_by', sa.Integer(), nullable=True, comment='最后修改人ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='通知公告表'
    )
    op.create_index('ix_notices_author_id', 'notices', ['author_id'])
    op.create_index('ix_notices_status_publish', 'notices', ['status', 'publish_date'])
    op.create_index('ix_notices_type_category', 'notices', ['type', 'category'])

    # 点赞
    op.create_table(
        'notice_likes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('liked_at', sa.DateTime(timezone=True), nullable=False, comment='点赞时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notice_id', 'user_id', name='uq_notice_like_user'),
        comment='通知点赞表'
    )
    op.create_index('ix_notice_likes_notice_id', 'notice_likes', ['notice_id'])
    op.create_index('ix_notice_likes_user_id', 'notice_likes', ['user_id'])

    # 收藏
    op.create_table(
        'notice_bookmarks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('bookmarked_at', sa.DateTime(timezone=True), nullable=False, comment='收藏时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notice_id', 'user_id', name='uq_notice_bookmark_user'),
        comment='通知收藏表'
    )
    op.create_index('ix_notice_bookmarks_notice_id', 'notice_bookmarks', ['notice_id'])
    op.create_index('ix_notice_bookmarks_user_id', 'notice_bookmarks', ['user_id'])

    # 评论
    op.create_table(
        'notice_comments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='评论人ID'),
        sa.Column('user_name', sa.String(120), nullable=False, comment='评论人姓名（快照）'),
        sa.Column('content', sa.Text(), nullable=False, comment='评论内容'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='评论时间'),
        sa.Column('is_edited', sa.Boolean(), nullable=False, comment='是否编辑过'),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True, comment='编辑时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='通知评论表'
    )
    op.create_index('ix_notice_comments_notice_id', 'notice_comments', ['notice_id'])
    op.create_index('ix_notice_comments_user_id', 'notice_comments', ['user_id'])

    # 目标受众
    op.create_table(
        'notice_audiences',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('kind', sa.String(20), nullable=False, comment='维度: department/role/user/year_level'),
        sa.Column('value', sa.String(100), nullable=False, comment='取值'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notice_id', 'kind', 'value', name='uq_notice_audience'),
        comment='通知目标受众表'
    )
    op.create_index('ix_notice_audiences_notice_id', 'notice_audiences', ['notice_id'])
    op.create_index('ix_notice_audience_kind_value', 'notice_audiences', ['kind', 'value'])

    # 修订历史
    op.create_table(
        'notice_revisions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('version', sa.Integer(), nullable=False, comment='修订后版本号'),
        sa.Column('modified_by', sa.Integer(), nullable=False, comment='修改人ID'),
        sa.Column('modified_at', sa.DateTime(timezone=True), nullable=False, comment='修改时间'),
        sa.Column('changes', sa.String(500), nullable=False, comment='变更说明'),
        sa.PrimaryKeyConstraint('id'),
        comment='通知修订历史表'
    )
    op.create_index('ix_notice_revision_notice_version', 'notice_revisions', ['notice_id', 'version'])

    # 独立浏览记录
    op.create_table(
        'notice_views',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('notice_id', sa.Integer(), _notice_fk(), nullable=False, comment='通知ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('first_viewed_at', sa.DateTime(timezone=True), nullable=False, comment='首次浏览时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notice_id', 'user_id', name='uq_notice_view_user'),
        comment='通知独立浏览记录表'
    )
    op.create_index('ix_notice_views_notice_id', 'notice_views', ['notice_id'])


def downgrade() -> None:
    for table in (
        'notice_views', 'notice_revisions', 'notice_audiences',
        'notice_comments', 'notice_bookmarks', 'notice_likes',
    ):
        op.drop_table(table)
    op.drop_index('ix_notices_type_category', table_name='notices')
    op.drop_index('ix_notices_status_publish', table_name='notices')
    op.drop_index('ix_notices_author_id', table_name='notices')
    op.drop_table('notices')
    op.drop_index('ix_sys_users_role', table_name='sys_users')
    op.drop_index('ix_sys_users_email', table_name='sys_users')
    op.drop_table('sys_users')
