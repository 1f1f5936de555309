"""
DynamoDB persistence sink.

People are keyed by handle and get integer ids from an atomic counter in the
sequence table. Follow edges are written with batch writes. The methods are
synchronous; the traversal engine runs them on its executor.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from pynamodb.exceptions import DoesNotExist, PutError, PynamoDBException

from ...schema.people import Person, ProfileAttributes
from ..config.settings import CrawlerSettings
from ..core.exceptions import PersistenceError
from ..core.types import IdentityKey
from .models import FollowModel, PersonModel, SequenceModel, initialize_models

logger = logging.getLogger(__name__)

PERSON_SEQUENCE = "person"


class DynamoDBPersistenceSink:
    """
    Persistence sink backed by the people, follows and sequence tables.
    """

    def __init__(self, settings: CrawlerSettings):
        self.settings = settings
        initialize_models(settings)

        self.stats = {
            "people_created": 0,
            "people_updated": 0,
            "follows_written": 0,
            "errors_encountered": 0,
        }

        logger.info(
            f"Initialized DynamoDB persistence sink "
            f"(people={settings.people_table}, follows={settings.follows_table}, region={settings.aws_region})"
        )

    def _allocate_id(self) -> int:
        """Atomically increment the person counter and return the new value"""
        sequence = SequenceModel(PERSON_SEQUENCE)
        sequence.update(actions=[SequenceModel.value.add(1)])
        return int(sequence.value)

    def persist_identity(self, key: IdentityKey, attrs: ProfileAttributes) -> int:
        """
        Upsert a person by handle and return its id.

        Raises:
            PersistenceError: If DynamoDB rejects the write
        """
        try:
            try:
                item = PersonModel.get(key)
                person_id = int(item.person_id)
                created = False
            except DoesNotExist:
                person_id = self._allocate_id()
                item = PersonModel(key, person_id=person_id)
                created = True

            item.display_name = attrs.display_name
            item.image_url = attrs.image_url
            item.verified = attrs.verified
            item.plan = attrs.plan_tier.value
            item.track_count = attrs.content_count
            item.updated_at = datetime.now(timezone.utc)

            if created:
                try:
                    item.save(condition=PersonModel.handle.does_not_exist())
                except PutError as e:
                    if e.cause_response_code != "ConditionalCheckFailedException":
                        raise
                    # Recorded concurrently by another run; keep its id
                    existing = PersonModel.get(key)
                    person_id = int(existing.person_id)
                    created = False
            else:
                item.save()

        except PynamoDBException as e:
            self.stats["errors_encountered"] += 1
            raise PersistenceError(f"Failed to persist person {key}: {e}", e) from e

        self.stats["people_created" if created else "people_updated"] += 1
        logger.debug(f"Persisted {key} as person {person_id}")
        return person_id

    def persist_edges(self, source_internal_id: int, targets: Sequence[IdentityKey]) -> None:
        """
        Write follow edges from `source_internal_id` to each handle in `targets`.

        Existing edges are overwritten in place, so repeats are harmless.

        Raises:
            PersistenceError: If DynamoDB rejects the batch
        """
        unique_targets = list(dict.fromkeys(targets))
        if not unique_targets:
            return

        try:
            with FollowModel.batch_write() as batch:
                for target in unique_targets:
                    batch.save(FollowModel(source_internal_id, target))
        except PynamoDBException as e:
            self.stats["errors_encountered"] += 1
            raise PersistenceError(f"Failed to persist follows of person {source_internal_id}: {e}", e) from e

        self.stats["follows_written"] += len(unique_targets)
        logger.debug(f"Persisted {len(unique_targets)} follows for person {source_internal_id}")

    def get_person(self, handle: IdentityKey) -> Optional[Person]:
        try:
            return PersonModel.get(handle).to_person()
        except DoesNotExist:
            return None

    def close(self) -> None:
        """Writes go straight to DynamoDB; nothing is buffered"""

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
