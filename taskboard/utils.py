import uuid
from typing import Optional


def new_id() -> str:
    return str(uuid.uuid4())


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip optional free text; blank becomes ``None``."""
    if value is None:
        return None
    return value.strip() or None
