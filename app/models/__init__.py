# Import every model so Base.metadata knows all tables
from app.models.profile import Profile  # noqa: F401
from app.models.import_token import ImportToken  # noqa: F401
from app.models.project import Project  # noqa: F401
from app.models.unit_type import UnitType  # noqa: F401
from app.models.contract import DeveloperAgencyContract  # noqa: F401
from app.models.agent_listing import AgentProject, AgentUnitType  # noqa: F401
from app.models.page_view import PageView  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
