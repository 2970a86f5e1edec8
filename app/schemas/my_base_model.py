from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy.engine.row import Row


class CustomBaseModel(BaseModel):
    """Custom base model for all response schemas.
    - build from ORM objects (from_attributes)
    - helper to build from a Row, a dict or an ORM object
    """

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_record(cls, record: Any):
        if isinstance(record, Row):
            return cls(**record._asdict())
        elif isinstance(record, dict):
            return cls(**record)
        elif hasattr(record, "__table__"):
            return cls.model_validate(record)
        else:
            raise ValueError(f"Invalid record type: {type(record)}")


class Message(CustomBaseModel):
    message: str = ""
    status_code: int = 200
