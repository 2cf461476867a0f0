from dataclasses import dataclass, field
from typing import Any


@dataclass
class Identity:
    user_id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)
