"""
Image Listing and Search Queries - CQRS Read Queries

Paged views over one owner's gallery: the plain listing (newest first) and
the search over annotated images.

Business Rules:
    - Only the caller's own images are ever listed or matched
    - Search matches only images whose annotation is "done"
    - query: case-insensitive substring of the description, or an exact tag
    - color: exact (case-insensitive) dominant color label
    - similar_to_id: shares at least one tag with that image (itself excluded)
    - Every given criterion must match; at least one is required
    - An empty result is a normal page, not an error
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from image_gallery.application.queries.get_image_annotation import (
    GetImageAnnotationQuery,
    GetImageAnnotationQueryHandler,
    ImageDetailsResult,
)
from image_gallery.domain.annotation.entities.annotation_record import (
    AnnotationRecord,
    AnnotationStatus,
)
from image_gallery.domain.annotation.entities.image import Image
from image_gallery.domain.shared.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class ListImagesQuery(BaseModel):
    """
    One page of an owner's images.

    Attributes:
        owner_id: Authenticated user
        page: 1-based page number
        limit: Page size (1..100)
    """

    owner_id: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class SearchImagesQuery(ListImagesQuery):
    query: Optional[str] = None
    color: Optional[str] = None
    similar_to_id: Optional[str] = None

    def has_criteria(self) -> bool:
        return any(
            value and value.strip()
            for value in (self.query, self.color, self.similar_to_id)
        )


class ImagePageResult(BaseModel):
    page: int
    limit: int
    total: int = Field(description="Matching images across all pages")
    images: list[ImageDetailsResult]


class SearchImagesQueryHandler(GetImageAnnotationQueryHandler):
    """
    Handler for gallery listing and search.

    Architecture:
        API Layer -> QueryHandler -> ImageRepository + ProcessingStateStore

    Search reads the owner's whole listing and filters it against the
    annotation records; the stores keep no annotation index.
    """

    async def _details_for(
        self, images: list[Image], records: dict[str, AnnotationRecord]
    ) -> list[ImageDetailsResult]:
        details = []
        for image in images:
            record = records.get(image.id)
            if record is None:
                logger.warning(f"Image {image.id} has no annotation record, not listed")
                continue
            details.append(await self._build_details(image, record))
        return details

    async def list_images(self, query: ListImagesQuery) -> ImagePageResult:
        total = await self.image_repository.count_by_owner(query.owner_id)
        images = await self.image_repository.list_by_owner(
            query.owner_id, offset=query.offset, limit=query.limit
        )
        records = await self.state_store.get_many([image.id for image in images])
        return ImagePageResult(
            page=query.page,
            limit=query.limit,
            total=total,
            images=await self._details_for(images, records),
        )

    async def _reference_tags(self, query: SearchImagesQuery) -> Optional[set[str]]:
        if not query.similar_to_id:
            return None
        reference = await self._get_owned_image(
            GetImageAnnotationQuery(image_id=query.similar_to_id, owner_id=query.owner_id)
        )
        record = await self.state_store.get(reference.id)
        if record is None or record.status != AnnotationStatus.DONE:
            return set()
        return set(record.tags or ())

    @staticmethod
    def _matches(
        query: SearchImagesQuery,
        image: Image,
        record: AnnotationRecord,
        reference_tags: Optional[set[str]],
    ) -> bool:
        if record.status != AnnotationStatus.DONE:
            return False
        tags = set(record.tags or ())

        keyword = (query.query or "").strip().lower()
        if keyword and keyword not in tags and keyword not in (record.description or "").lower():
            return False

        color = (query.color or "").strip().lower()
        if color and color not in {c.lower() for c in record.colors or ()}:
            return False

        if reference_tags is not None:
            if image.id == query.similar_to_id or not tags & reference_tags:
                return False
        return True

    async def search(self, query: SearchImagesQuery) -> ImagePageResult:
        """
        Raises:
            InvalidInputError: If no search criterion is given
            ImageNotFoundError: If similar_to_id is not one of the caller's images
        """
        if not query.has_criteria():
            raise InvalidInputError(
                "Provide at least one of query, color or similarToId", field_name="query"
            )

        reference_tags = await self._reference_tags(query)
        images = await self.image_repository.list_by_owner(query.owner_id)
        records = await self.state_store.get_many([image.id for image in images])

        matching = [
            image
            for image in images
            if image.id in records
            and self._matches(query, image, records[image.id], reference_tags)
        ]
        page = matching[query.offset : query.offset + query.limit]
        logger.debug(f"Search by {query.owner_id}: {len(matching)} matches")

        return ImagePageResult(
            page=query.page,
            limit=query.limit,
            total=len(matching),
            images=await self._details_for(page, records),
        )
