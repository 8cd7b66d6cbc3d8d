"""
Module: shoptrack_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the kernel, giving dashboards and inventory views
    structured read access without mutation capability.
Architecture position: Kernel > Selectors.  May import from repository/ and
    domain/.  MUST NOT import from services/ or outer layers.
    Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Read-only access: selectors only call the non-transactional read API of
      the Repository; they never call run_atomic.
    - DTO return convention: selectors return frozen domain dataclasses or
      values computed from them.
"""

from abc import ABC

from shoptrack_kernel.repository.base import Repository


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Repository from the caller, perform read-only
        queries, and return DTOs or computed results.

    Non-goals:
        - BaseSelector does NOT define any query methods; subclasses implement
          view-specific queries (inventory, dashboard).
    """

    def __init__(self, repository: Repository):
        self.repository = repository
