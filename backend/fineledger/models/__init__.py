from .identities import (
    Identity,
    ROLE_OFFICER,
    ROLE_DRIVER,
    ROLE_ADMIN,
    ROLE_DEPARTMENT_OFFICIAL,
    VALID_ROLES,
)
from .provisions import Provision
from .fines import (
    Fine,
    FinePayment,
    FineEvent,
    ReferenceSequence,
    FINE_STATUS_PENDING,
    FINE_STATUS_PAID,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_VOID,
    VALID_FINE_STATUSES,
)

__all__ = [
    'Identity', 'ROLE_OFFICER', 'ROLE_DRIVER', 'ROLE_ADMIN', 'ROLE_DEPARTMENT_OFFICIAL', 'VALID_ROLES',
    'Provision',
    'Fine', 'FinePayment', 'FineEvent', 'ReferenceSequence',
    'FINE_STATUS_PENDING', 'FINE_STATUS_PAID', 'FINE_STATUS_DISPUTED', 'FINE_STATUS_VOID',
    'VALID_FINE_STATUSES',
]
