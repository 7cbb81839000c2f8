from datetime import datetime

from pydantic import BaseModel


class CallTokenOut(BaseModel):
    """Credentials for joining the video call of a confirmed reservation."""

    token: str
    channel: str
    uid: int
    role: str
    expires_at: datetime
