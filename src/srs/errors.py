"""
Error taxonomy for the scheduling engine.

Pure scheduling functions only ever raise `ValidationError`. Store-facing
code raises `NotFound` subclasses, `StoreUnavailable` or `DuplicateAttempt`.
`Degraded` marks a post-write hook failure and is logged by the attempt
recorder rather than propagated.
"""

from __future__ import annotations


class SRSError(Exception):
    """Base class for all engine errors."""


class NotFound(SRSError):
    """A referenced learner, item, set or template does not exist."""

    entity = "resource"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"{self.entity} not found: {identifier}")


class ItemNotFound(NotFound):
    entity = "item"


class LearnerNotFound(NotFound):
    entity = "learner"


class SetNotFound(NotFound):
    entity = "item set"


class TemplateNotFound(NotFound):
    entity = "study plan template"


class ValidationError(SRSError, ValueError):
    """Input outside its documented domain. Never coerced."""


class StoreUnavailable(SRSError):
    """Transient failure of a collaborator store; safe to retry the call."""


class DuplicateAttempt(SRSError):
    """The attempt log already holds this (learner, idempotency key)."""

    def __init__(self, learner_id: str, idempotency_key: str) -> None:
        self.learner_id = learner_id
        self.idempotency_key = idempotency_key
        super().__init__(f"attempt {idempotency_key!r} already recorded for {learner_id}")


class Degraded(SRSError):
    """A non-fatal hook failed after the review was durably recorded."""

    def __init__(self, hook: str, cause: BaseException) -> None:
        self.hook = hook
        super().__init__(f"{hook} failed: {cause!r}")
