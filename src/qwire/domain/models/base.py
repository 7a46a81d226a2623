"""Base model shared by Questrade data records"""

from pydantic import BaseModel, ConfigDict


class QuestradeModel(BaseModel):
    """Plain data record decoded from Questrade JSON

    Field names follow the API's camelCase keys. Unknown keys are ignored and
    missing keys fall back to zero-values.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)
