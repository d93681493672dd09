"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from assessor.db.models.assessment_job import AssessmentJobEventRow, AssessmentJobRow
from assessor.db.models.project_assessment import ProjectAssessmentRow
from assessor.db.models.project_template import ProjectTemplateRow

__all__ = [
    "AssessmentJobEventRow",
    "AssessmentJobRow",
    "ProjectAssessmentRow",
    "ProjectTemplateRow",
]
