"""Legal status transitions for assessment jobs."""

from assessor.models.enums import JobStatus

# target status -> statuses it may be entered from
VALID_PREDECESSORS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.GENERATION_IN_PROGRESS: frozenset({
        JobStatus.PENDING,
        JobStatus.FAILED_GENERATION,
        # forced resume of a stale run
        JobStatus.GENERATION_IN_PROGRESS,
    }),
    JobStatus.GENERATION_COMPLETE: frozenset({JobStatus.GENERATION_IN_PROGRESS}),
    JobStatus.FAILED_GENERATION: frozenset({JobStatus.GENERATION_IN_PROGRESS}),
    JobStatus.ESTIMATION_IN_PROGRESS: frozenset({
        JobStatus.GENERATION_COMPLETE,
        JobStatus.FAILED_ESTIMATION,
        JobStatus.ESTIMATION_IN_PROGRESS,
    }),
    JobStatus.ESTIMATION_COMPLETE: frozenset({JobStatus.ESTIMATION_IN_PROGRESS}),
    JobStatus.FAILED_ESTIMATION: frozenset({JobStatus.ESTIMATION_IN_PROGRESS}),
    JobStatus.COMPLETE: frozenset({JobStatus.ESTIMATION_COMPLETE}),
}

IN_PROGRESS_STATUSES = frozenset({
    JobStatus.GENERATION_IN_PROGRESS,
    JobStatus.ESTIMATION_IN_PROGRESS,
})

FAILED_STATUSES = frozenset({
    JobStatus.FAILED_GENERATION,
    JobStatus.FAILED_ESTIMATION,
})

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE})

# Statuses whose transition must carry the named artifact.
REQUIRES_GENERATION_ARTIFACT = frozenset({JobStatus.GENERATION_COMPLETE})
REQUIRES_ESTIMATION_ARTIFACT = frozenset({JobStatus.ESTIMATION_COMPLETE})

# Entering a failure status must record an error message.
REQUIRES_ERROR = FAILED_STATUSES


def is_valid_transition(current: JobStatus, target: JobStatus) -> bool:
    return current in VALID_PREDECESSORS.get(target, frozenset())


def stage_of(status: JobStatus) -> str | None:
    """Name of the stage a status belongs to, if any."""
    if status in (
        JobStatus.GENERATION_IN_PROGRESS,
        JobStatus.GENERATION_COMPLETE,
        JobStatus.FAILED_GENERATION,
    ):
        return "generation"
    if status in (
        JobStatus.ESTIMATION_IN_PROGRESS,
        JobStatus.ESTIMATION_COMPLETE,
        JobStatus.FAILED_ESTIMATION,
    ):
        return "estimation"
    return None
