from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID
from .db_models import User  # Importing the User model from our db_models


class UserSessionRedis(BaseModel):
    """
    Represents a user's login session stored in Redis.
    The snapshot of the user is what authenticated requests act as, so admin
    changes to role or activation delete this entry to force a fresh login.
    """
    user_data: User = Field(..., description="The core user data from the database.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")
