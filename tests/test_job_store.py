"""JobStore persistence and compare-and-set tests."""

import asyncio

import pytest

from assessor.errors.exceptions import (
    ConcurrentModificationError,
    InvalidJobStateError,
    NotFoundError,
)
from assessor.models.assessment import (
    ColumnEstimates,
    DraftItem,
    DraftSection,
    DraftSections,
    ItemEstimate,
)
from assessor.models.enums import JobStatus


def _draft(*item_ids: str) -> DraftSections:
    return DraftSections(
        sections=[
            DraftSection(
                section_name="Features",
                section_type="AI-Generated",
                items=[DraftItem(item_id=item_id, item_name=f"Item {item_id}") for item_id in item_ids],
            )
        ]
    )


def _estimates(*item_ids: str) -> ColumnEstimates:
    return ColumnEstimates(
        columns=["BE"],
        items={item_id: ItemEstimate(hours={"BE": 4.0}) for item_id in item_ids},
    )


async def _to_generation_complete(store, job, *item_ids):
    job = await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
    return await store.transition_to(
        job, JobStatus.GENERATION_COMPLETE, generation_artifact=_draft(*item_ids), raw_response="[]"
    )


# ---------------------------------------------------------------------------
# Create / read / list / delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_job_starts_pending(store, make_job, template):
    job = await make_job()
    assert job.id.startswith("asj_")
    assert job.status == JobStatus.PENDING
    assert job.version == 0
    assert job.template_snapshot == template
    assert job.generation_artifact is None
    assert job.estimation_artifact is None
    assert job.error_message is None
    assert job.created_at.tzinfo is not None

    fetched = await store.get(job.id)
    assert fetched == job


@pytest.mark.asyncio
async def test_get_missing_job_returns_none(store):
    assert await store.get("asj_missing") is None


@pytest.mark.asyncio
async def test_require_missing_job_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.require("asj_missing")


@pytest.mark.asyncio
async def test_list_summaries_most_recent_first(store, make_job):
    first = await make_job(project_name="First")
    second = await make_job(project_name="Second")
    await store.transition_to(first, JobStatus.GENERATION_IN_PROGRESS)

    summaries = await store.list_summaries()
    assert [summary.id for summary in summaries] == [first.id, second.id]
    assert summaries[0].status == JobStatus.GENERATION_IN_PROGRESS
    assert summaries[1].project_name == "Second"


@pytest.mark.asyncio
async def test_delete_job(store, make_job):
    job = await make_job()
    other = await make_job()
    assert await store.delete(job.id) is True
    assert await store.get(job.id) is None
    assert await store.get(other.id) is not None
    assert await store.list_events(job.id) == []


@pytest.mark.asyncio
async def test_delete_missing_job_returns_false(store):
    assert await store.delete("asj_missing") is False


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_transition_bumps_version_and_records_event(store, make_job):
    job = await make_job()
    moved = await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
    assert moved.status == JobStatus.GENERATION_IN_PROGRESS
    assert moved.version == job.version + 1
    assert moved.last_modified_at >= job.last_modified_at

    stored = await store.get(job.id)
    assert stored.status == JobStatus.GENERATION_IN_PROGRESS
    assert stored.version == moved.version

    events = await store.list_events(job.id)
    assert [(e.from_status, e.to_status) for e in events] == [
        (None, JobStatus.PENDING),
        (JobStatus.PENDING, JobStatus.GENERATION_IN_PROGRESS),
    ]


@pytest.mark.asyncio
async def test_transition_rejects_invalid_edge(store, make_job):
    job = await make_job()
    with pytest.raises(InvalidJobStateError):
        await store.transition_to(job, JobStatus.COMPLETE)
    assert (await store.get(job.id)).status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_stale_snapshot_raises_concurrent_modification(store, make_job):
    job = await make_job()
    await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
    with pytest.raises(ConcurrentModificationError) as exc_info:
        await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
    assert exc_info.value.actual_status == JobStatus.GENERATION_IN_PROGRESS.value


@pytest.mark.asyncio
async def test_same_status_with_stale_version_is_rejected(store, make_job):
    job = await make_job()
    running = await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
    await store.transition_to(running, JobStatus.GENERATION_IN_PROGRESS)
    with pytest.raises(ConcurrentModificationError):
        await store.transition_to(running, JobStatus.FAILED_GENERATION, error_message="late")


@pytest.mark.asyncio
async def test_transition_on_deleted_job_raises_not_found(store, make_job):
    job = await make_job()
    await store.delete(job.id)
    with pytest.raises(NotFoundError):
        await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)


@pytest.mark.asyncio
async def test_concurrent_transitions_admit_exactly_one(store, make_job):
    job = await make_job()
    results = await asyncio.gather(
        store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS),
        store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS),
        return_exceptions=True,
    )
    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConcurrentModificationError)
    assert (await store.get(job.id)).version == 1


@pytest.mark.asyncio
async def test_generation_complete_requires_artifact(store, make_job):
    job = await store.transition_to(await make_job(), JobStatus.GENERATION_IN_PROGRESS)
    with pytest.raises(ValueError):
        await store.transition_to(job, JobStatus.GENERATION_COMPLETE)
    assert (await store.get(job.id)).status == JobStatus.GENERATION_IN_PROGRESS


@pytest.mark.asyncio
async def test_failure_requires_error_message(store, make_job):
    job = await store.transition_to(await make_job(), JobStatus.GENERATION_IN_PROGRESS)
    with pytest.raises(ValueError):
        await store.transition_to(job, JobStatus.FAILED_GENERATION)


@pytest.mark.asyncio
async def test_generation_checkpoint_persists_artifact_and_raw_response(store, make_job):
    job = await _to_generation_complete(store, await make_job(), "a", "b")
    stored = await store.get(job.id)
    assert stored.generation_artifact.item_ids() == ["a", "b"]
    assert stored.raw_generation_response == "[]"


@pytest.mark.asyncio
async def test_estimation_artifact_must_cover_generated_items(store, make_job):
    job = await _to_generation_complete(store, await make_job(), "a", "b")
    job = await store.transition_to(job, JobStatus.ESTIMATION_IN_PROGRESS)
    with pytest.raises(ValueError):
        await store.transition_to(job, JobStatus.ESTIMATION_COMPLETE, estimation_artifact=_estimates("a"))
    with pytest.raises(ValueError):
        await store.transition_to(
            job, JobStatus.ESTIMATION_COMPLETE, estimation_artifact=_estimates("a", "b", "c")
        )
    done = await store.transition_to(
        job, JobStatus.ESTIMATION_COMPLETE, estimation_artifact=_estimates("a", "b")
    )
    assert done.estimation_artifact.item_ids() == {"a", "b"}


@pytest.mark.asyncio
async def test_failure_keeps_last_good_artifact_and_resume_clears_error(store, make_job):
    job = await _to_generation_complete(store, await make_job(), "a")
    job = await store.transition_to(job, JobStatus.ESTIMATION_IN_PROGRESS)
    failed = await store.transition_to(job, JobStatus.FAILED_ESTIMATION, error_message="timed out")

    stored = await store.get(failed.id)
    assert stored.error_message == "timed out"
    assert stored.generation_artifact.item_ids() == ["a"]
    assert stored.estimation_artifact is None

    retried = await store.transition_to(stored, JobStatus.ESTIMATION_IN_PROGRESS)
    assert retried.error_message is None
    assert (await store.get(job.id)).error_message is None
