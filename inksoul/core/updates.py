from datetime import datetime
from typing import Any, Dict, Iterable

class ForbiddenFieldError(ValueError):
    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Fields cannot be updated: {', '.join(self.fields)}")

def apply_allowed_updates(entity: Any, changes: Dict[str, Any], allowed: Iterable[str]) -> Any:
    """
    Copy `changes` onto `entity`, refusing any key outside `allowed`.

    Counters and ownership fields never appear in an allow-list, so a patch
    from the client can not touch them.
    """
    allowed = set(allowed)
    rejected = set(changes) - allowed
    if rejected:
        raise ForbiddenFieldError(rejected)

    for key, value in changes.items():
        setattr(entity, key, value)

    if hasattr(entity, "updated_at"):
        entity.updated_at = datetime.utcnow()
    return entity
