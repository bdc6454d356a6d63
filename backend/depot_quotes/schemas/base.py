"""Base Pydantic schemas with strict validation."""
from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Base model that forbids extra fields.

    All API request/response models should inherit from this class.
    Fields may declare camelCase aliases for the JSON contract; they can
    still be populated by their Python names.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
