from typing import Dict
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Actor context resolved by the auth/tenancy layer.
    The fee services only use tenant_id (scoping) and id (collected_by, approved_by, ...).
    """

    id: UUID
    tenant_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
