"""
DynamoDB models for people and follow edges.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pynamodb.attributes import BooleanAttribute, NumberAttribute, UnicodeAttribute, UTCDateTimeAttribute
from pynamodb.models import Model

from ...schema.people import Person, PlanTier
from ..config.settings import CrawlerSettings


class PersonModel(Model):
    """
    DynamoDB model for a discovered person, keyed by platform handle.
    """

    class Meta:  # type: ignore[reportIncompatibleVariableOverride]
        table_name = "follow-crawler-people"
        region = "ap-northeast-1"
        host = None  # Set to the LocalStack endpoint for devlocal
        billing_mode = "PAY_PER_REQUEST"

    handle = UnicodeAttribute(hash_key=True)
    person_id = NumberAttribute()

    display_name = UnicodeAttribute()
    image_url = UnicodeAttribute(default="")
    verified = BooleanAttribute(default=False)
    plan = UnicodeAttribute(default=PlanTier.NONE.value)  # None/Artist/ArtistPro
    track_count = NumberAttribute(default=0)

    created_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))
    updated_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))

    def to_person(self) -> Person:
        return Person(
            id=int(self.person_id),
            handle=self.handle,
            display_name=self.display_name,
            image_url=self.image_url or "",
            verified=bool(self.verified),
            plan_tier=PlanTier.from_stored(self.plan),
            content_count=int(self.track_count or 0),
        )


class FollowModel(Model):
    """
    DynamoDB model for a follow edge: follower id -> followee handle.
    """

    class Meta:  # type: ignore[reportIncompatibleVariableOverride]
        table_name = "follow-crawler-follows"
        region = "ap-northeast-1"
        host = None
        billing_mode = "PAY_PER_REQUEST"

    follower_id = NumberAttribute(hash_key=True)
    followee_handle = UnicodeAttribute(range_key=True)

    created_at = UTCDateTimeAttribute(default=lambda: datetime.now(timezone.utc))


class SequenceModel(Model):
    """
    Atomic counters used to allocate integer person ids.
    """

    class Meta:  # type: ignore[reportIncompatibleVariableOverride]
        table_name = "follow-crawler-sequences"
        region = "ap-northeast-1"
        host = None
        billing_mode = "PAY_PER_REQUEST"

    name = UnicodeAttribute(hash_key=True)
    value = NumberAttribute(default=0)


ALL_MODELS = (PersonModel, FollowModel, SequenceModel)


def initialize_models(settings: CrawlerSettings) -> None:
    """
    Point the models at the configured tables, region and endpoint.

    Must be called before the models are first used.
    """
    PersonModel.Meta.table_name = settings.people_table
    FollowModel.Meta.table_name = settings.follows_table
    SequenceModel.Meta.table_name = settings.sequence_table

    for model in ALL_MODELS:
        model.Meta.region = settings.aws_region
        model.Meta.host = settings.localstack_endpoint if settings.environment == "devlocal" else None


def create_tables_if_not_exist() -> None:
    """Create the DynamoDB tables that do not exist yet."""
    for model in ALL_MODELS:
        if not model.exists():
            model.create_table(billing_mode="PAY_PER_REQUEST", wait=True)
