"""
Database models for the content pipeline.

The pipeline only reads these tables; projects, clusters and article
metadata are written by the dashboard and the publishing step:
- projects: A CMS project (one website)
- topic_clusters: Named article groupings with an optional pillar article
- articles_metadata: Published article snapshots used as link targets
"""
import uuid
from datetime import datetime, timezone


def utc_now():
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)
from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class Project(Base):
    """A CMS project. Internal links never cross project boundaries."""
    __tablename__ = "projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    base_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    articles = relationship("Article", back_populates="project", foreign_keys="Article.project_id")
    clusters = relationship("TopicCluster", back_populates="project")


class TopicCluster(Base):
    """
    A topic cluster groups articles that share a theme.

    The pillar article is the cluster's cornerstone; links towards it are
    ranked above every other cluster member.
    """
    __tablename__ = "topic_clusters"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    pillar_article_id = Column(
        UUID(as_uuid=True),
        ForeignKey("articles_metadata.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), default=utc_now)

    project = relationship("Project", back_populates="clusters")
    pillar_article = relationship("Article", foreign_keys=[pillar_article_id])
    articles = relationship("Article", back_populates="cluster", foreign_keys="Article.cluster_id")


class Article(Base):
    """Metadata snapshot of a published article."""
    __tablename__ = "articles_metadata"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    cluster_id = Column(
        UUID(as_uuid=True),
        ForeignKey("topic_clusters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title = Column(Text, nullable=False)
    slug = Column(String(500), nullable=False)
    excerpt = Column(Text)
    focus_keyword = Column(Text)

    published_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utc_now)

    project = relationship("Project", back_populates="articles", foreign_keys=[project_id])
    cluster = relationship("TopicCluster", back_populates="articles", foreign_keys=[cluster_id])

    __table_args__ = (
        UniqueConstraint('project_id', 'slug', name='uq_articles_project_slug'),
        Index('idx_articles_project_published', project_id, published_at.desc()),
    )
