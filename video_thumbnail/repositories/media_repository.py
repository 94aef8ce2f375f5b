"""SQLAlchemy implementation of MediaRepository."""

from sqlalchemy.orm import Session

from ..database.models import Media as MediaEntity
from ..domain.models import MediaAsset
from .interfaces import MediaRepository


class SQLAlchemyMediaRepository(MediaRepository):
    """SQLAlchemy implementation of MediaRepository."""

    def __init__(self, session: Session):
        self.session = session

    def save(self, media: MediaAsset) -> MediaAsset:
        """Save media to database."""
        entity = MediaEntity(
            media_id=media.media_id,
            storage_id=media.storage_id,
            filename=media.filename,
            media_type=media.media_type,
            duration=media.duration,
            file_size=media.file_size,
            has_thumbnails=media.has_thumbnails,
            data=dict(media.data),
        )

        entity = self.session.merge(entity)
        self.session.commit()
        self.session.refresh(entity)

        return self._entity_to_domain(entity)

    def find_by_id(self, media_id: str) -> MediaAsset | None:
        """Find media by ID."""
        entity = self._get(media_id)
        return self._entity_to_domain(entity) if entity else None

    def find_by_media_types(self, media_types) -> list[MediaAsset]:
        """Find media of the given types, ordered by creation then ID."""
        entities = (
            self.session.query(MediaEntity)
            .filter(MediaEntity.media_type.in_(list(media_types)))
            .order_by(MediaEntity.created_at.asc(), MediaEntity.media_id.asc())
            .all()
        )
        return [self._entity_to_domain(entity) for entity in entities]

    def set_has_thumbnails(self, media_id: str, value: bool) -> bool:
        entity = self._get(media_id)
        if not entity:
            return False
        entity.has_thumbnails = bool(value)
        self.session.commit()
        return True

    def set_duration(self, media_id: str, duration: float) -> bool:
        entity = self._get(media_id)
        if not entity:
            return False
        entity.duration = float(duration)
        self.session.commit()
        return True

    def update_data(self, media_id: str, values: dict) -> bool:
        entity = self._get(media_id)
        if not entity:
            return False
        # Reassign so the JSON column is flagged dirty
        data = dict(entity.data or {})
        data.update(values)
        entity.data = data
        self.session.commit()
        return True

    def _get(self, media_id: str) -> MediaEntity | None:
        return (
            self.session.query(MediaEntity)
            .filter(MediaEntity.media_id == media_id)
            .first()
        )

    def _entity_to_domain(self, entity: MediaEntity) -> MediaAsset:
        """Convert database entity to domain model."""
        return MediaAsset(
            media_id=entity.media_id,
            storage_id=entity.storage_id,
            filename=entity.filename,
            media_type=entity.media_type,
            duration=entity.duration,
            has_thumbnails=bool(entity.has_thumbnails),
            data=dict(entity.data or {}),
            file_size=entity.file_size,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
