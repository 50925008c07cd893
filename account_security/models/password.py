"""Password policy result"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class PasswordCheck(BaseModel):
    """Outcome of a password policy check; ``reason`` names the first failed rule"""

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
