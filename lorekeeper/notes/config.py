"""Note pipeline configuration."""

from pydantic import BaseModel


class NotesConfig(BaseModel):
    """Note entity pipeline configuration."""

    # Content bounds checked before any quota is reserved
    min_content_length: int = 50
    max_content_length: int = 10000

    # Inference call
    inference_timeout: float = 30.0  # Seconds
    inference_temperature: float = 0.0
    confidence_floor: float = 0.0  # Candidates below this are dropped at parse time

    # Reconciliation passes
    use_reference_filter: bool = True
    use_campaign_filter: bool = True


# Default configuration
default_config = NotesConfig()
