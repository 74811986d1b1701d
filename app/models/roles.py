from enum import IntEnum


class Role(IntEnum):
    ADMINISTRATOR = 1
    COMPANY_OWNER = 2
    CUSTOMER = 3
    GUIDE = 4

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def is_tenant_role(self) -> bool:
        return self in TENANT_ROLES


TENANT_ROLES = frozenset({Role.COMPANY_OWNER, Role.GUIDE})
