"""
Persistence sinks for discovered people and follow edges.
"""

from ..config.settings import CrawlerSettings
from .dynamodb_sink import DynamoDBPersistenceSink
from .local_sink import LocalPersistenceSink
from .models import FollowModel, PersonModel, SequenceModel, create_tables_if_not_exist, initialize_models

__all__ = [
    "DynamoDBPersistenceSink",
    "LocalPersistenceSink",
    "FollowModel",
    "PersonModel",
    "SequenceModel",
    "create_tables_if_not_exist",
    "initialize_models",
    # Factory functions
    "create_persistence_sink",
]


def create_persistence_sink(settings: CrawlerSettings):
    """
    Factory function to create the persistence sink for the configured backend.

    Args:
        settings: CrawlerSettings instance

    Returns:
        LocalPersistenceSink or DynamoDBPersistenceSink
    """
    if settings.storage_backend == "dynamodb":
        return DynamoDBPersistenceSink(settings)
    else:
        return LocalPersistenceSink(settings.local_store_file, flush_every=settings.local_flush_every)
