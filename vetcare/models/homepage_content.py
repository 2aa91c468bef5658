"""Homepage content model definitions."""

from sqlalchemy import Boolean, Column, Integer, String, Text

from vetcare.database import Base


class HomepageContent(Base):
    """An admin-managed block shown on the public homepage."""
    __tablename__ = "homepage_contents"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    image_path = Column(String)
    order = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=False)

    @classmethod
    def published(cls, query):
        return query.filter(cls.is_published.is_(True)).order_by(cls.order.asc(), cls.id.asc())
