"""Owner scoping shared by every store."""

from typing import Protocol, TypeVar

from binderkeep.models.failure import ForbiddenError, NotFoundError


class _Owned(Protocol):
    owner_id: str


OwnedT = TypeVar("OwnedT", bound=_Owned)


def ensure_owned(entity: str, entity_id: int, obj: OwnedT | None, owner_id: str) -> OwnedT:
    """
    Return `obj` if it exists and belongs to `owner_id`.

    Raises:
        NotFoundError: obj is None
        ForbiddenError: obj belongs to another owner
    """
    if obj is None:
        raise NotFoundError(entity, entity_id)
    if obj.owner_id != owner_id:
        raise ForbiddenError(entity, entity_id)
    return obj
