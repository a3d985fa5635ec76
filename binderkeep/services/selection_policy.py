"""
Selection policy: which inventory copies fill a slot.

Pure functions over already-ordered candidate lists. Ordering is the
store's job (oldest, then cheapest, then lowest id); the policy only walks
the list greedily.
"""

from collections.abc import Iterable, Sequence

from binderkeep.models.inventory import Allocation, Candidate


def select(candidates: Iterable[Candidate], required: int) -> list[Allocation]:
    """
    Choose rows and quantities for `required` unfilled copies.

    Walks candidates in the given order taking min(available, remaining)
    from each one with something available. The returned takes never sum
    past `required`; they sum to less when candidates run out.
    """
    remaining = required
    allocations: list[Allocation] = []
    if remaining <= 0:
        return allocations

    for candidate in candidates:
        if candidate.available <= 0:
            continue
        take = min(candidate.available, remaining)
        allocations.append(Allocation(inventory_row_id=candidate.inventory_row_id, take=take))
        remaining -= take
        if remaining == 0:
            break

    return allocations


def select_many(
    requests: Sequence[tuple[Sequence[Candidate], int]],
) -> list[list[Allocation]]:
    """
    Run `select` for several slots in one pass.

    Copies taken for an earlier slot are no longer available to a later
    one, so two slots matching the same row never over-commit it.
    """
    used: dict[int, int] = {}
    results: list[list[Allocation]] = []
    for candidates, required in requests:
        adjusted = [
            Candidate(
                inventory_row_id=c.inventory_row_id,
                available=c.available - used.get(c.inventory_row_id, 0),
                purchase_price=c.purchase_price,
                created_at=c.created_at,
                folder=c.folder,
            )
            for c in candidates
        ]
        allocations = select(adjusted, required)
        for allocation in allocations:
            used[allocation.inventory_row_id] = (
                used.get(allocation.inventory_row_id, 0) + allocation.take
            )
        results.append(allocations)
    return results

