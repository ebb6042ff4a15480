"""Eligibility filtering of proximity candidates."""

from typing import List

from services.exceptions import DispatchValidationError
from .search import Candidate


def filter_candidates(
    candidates: List[Candidate],
    service_category: str,
    require_active: bool = False,
) -> List[Candidate]:
    """
    Keep candidates offering `service_category`, preserving input order.

    With `require_active`, also drop candidates whose technician is not
    approved and active (or has no profile at all).
    """
    if not isinstance(service_category, str) or not service_category.strip():
        raise DispatchValidationError("Invalid serviceCategory", ["serviceCategory must be a non-empty string"])
    if not isinstance(candidates, (list, tuple)) or not all(isinstance(c, Candidate) for c in candidates):
        raise DispatchValidationError("Invalid candidates", ["candidates must be a list of Candidate"])

    eligible = []
    for candidate in candidates:
        if candidate.service_category != service_category:
            continue
        if require_active and (candidate.technician is None or not candidate.technician.is_eligible):
            continue
        eligible.append(candidate)
    return eligible
