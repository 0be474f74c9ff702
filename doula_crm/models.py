"""Import every table module so SQLModel.metadata knows all tables."""

from doula_crm.client_services import models as client_services  # noqa: F401
from doula_crm.contracts import models as contracts  # noqa: F401
from doula_crm.dashboards import models as dashboards  # noqa: F401
from doula_crm.documents import models as documents  # noqa: F401
from doula_crm.invoices import models as invoices  # noqa: F401
from doula_crm.leads import models as leads  # noqa: F401
from doula_crm.list_views import models as list_views  # noqa: F401
from doula_crm.meetings import models as meetings  # noqa: F401
from doula_crm.metadata import models as metadata  # noqa: F401
from doula_crm.navigation import models as navigation  # noqa: F401
from doula_crm.notifications import models as notifications  # noqa: F401
from doula_crm.organizations import models as organizations  # noqa: F401
from doula_crm.payments import models as payments  # noqa: F401
from doula_crm.records import models as records  # noqa: F401
from doula_crm.referrals import models as referrals  # noqa: F401
from doula_crm.reports import models as reports  # noqa: F401
from doula_crm.sharing import models as sharing  # noqa: F401
from doula_crm.team import models as team  # noqa: F401
from doula_crm.webhooks import models as webhooks  # noqa: F401
from doula_crm.workflows import models as workflows  # noqa: F401
