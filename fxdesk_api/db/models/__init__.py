"""
ORM models for organizations, users, repositories, currencies, customers,
cx sessions, orders and notes.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .organizations import (  # noqa: F401
    Organization,
    OrgSettings,
    OrgActivity,
)
from .users import (  # noqa: F401
    User,
    UserPreference,
    OrgMembership,
    OrgInvitation,
)
from .repositories import (  # noqa: F401
    OrgRepository,
    RepositoryAccessGrant,
    RepositoryAccessLog,
)
from .currencies import (  # noqa: F401
    AppCurrency,
    OrgCurrency,
    Denomination,
)
from .customers import (  # noqa: F401
    Customer,
    Identification,
    Address,
)
from .sessions import (  # noqa: F401
    CxSession,
    CxSessionUser,
    CxSessionAccessLog,
    FloatStack,
)
from .orders import (  # noqa: F401
    Order,
    Breakdown,
    FloatTransfer,
    CurrencySwap,
)
from .notes import Note  # noqa: F401
