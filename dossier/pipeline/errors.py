"""Pipeline error taxonomy.

Fatal errors (claim missing, persistence) fail the job. The others are caught
at their stage, logged, and the pipeline continues with reduced input.
"""


class DossierError(Exception):
    """Base class for pipeline errors."""


class ClaimNotFoundError(DossierError):
    """Claim id does not exist. Fatal."""

    def __init__(self, claim_id: int) -> None:
        super().__init__(f"Claim not found: {claim_id}")
        self.claim_id = claim_id


class SourceUnavailableError(DossierError):
    """A literature search failed or timed out. Recoverable."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} search failed: {reason}")
        self.source = source
        self.reason = reason


class ExtractionError(DossierError):
    """Evidence extraction for one paper failed. Recoverable; the paper is excluded."""


class SynthesisError(DossierError):
    """Verdict synthesis failed. Recoverable; the job succeeds without a verdict."""


class PersistenceError(DossierError):
    """A required database write failed. Fatal."""


class JobNotOwnedError(PersistenceError):
    """The job could not be moved QUEUED -> RUNNING; another runner owns it or it is gone."""

    def __init__(self, claim_id: int, job_id: int | None) -> None:
        super().__init__(f"Job {job_id} for claim {claim_id} is not QUEUED; not starting it")
        self.claim_id = claim_id
        self.job_id = job_id
