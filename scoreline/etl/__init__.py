"""ETL module for schedule extraction, normalization, and loading."""

from scoreline.etl.base import DataProvider, ProviderError, ProviderPayloadError
from scoreline.etl.competitions import COMPETITIONS, Competition, UnknownCompetitionError
from scoreline.etl.football_data import FootballDataProvider
from scoreline.etl.pipeline import SyncPipeline, create_sync_pipeline

__all__ = [
    "DataProvider",
    "ProviderError",
    "ProviderPayloadError",
    "FootballDataProvider",
    "Competition",
    "COMPETITIONS",
    "UnknownCompetitionError",
    "SyncPipeline",
    "create_sync_pipeline",
]
