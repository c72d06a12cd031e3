"""Error kinds raised inside the collection and delivery pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class. ``code`` is what gets written to collection/delivery logs."""

    code = "PIPELINE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class FetchError(PipelineError):
    code = "FETCH_ERROR"


class SimilarityError(PipelineError):
    code = "SIMILARITY_ERROR"


class EnrichmentError(PipelineError):
    code = "ENRICHMENT_ERROR"


class CollectionError(PipelineError):
    code = "COLLECTION_ERROR"


class DeliveryError(PipelineError):
    code = "SLACK_API_ERROR"


class ConfigurationError(PipelineError):
    code = "CONFIGURATION_ERROR"
