"""Project assessment repository."""

from assessor.db.models.project_assessment import ProjectAssessmentRow
from assessor.repositories.base import BaseRepository


class ProjectAssessmentRepository(BaseRepository[ProjectAssessmentRow]):
    model_class = ProjectAssessmentRow
    pk_field = "assessment_id"
