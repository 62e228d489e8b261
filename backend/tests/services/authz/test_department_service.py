from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.authz import DepartmentService


@pytest.mark.asyncio
async def test_department_lifecycle(db_session):
    service = DepartmentService(db_session)
    finance = await service.create_department(name="Finance", code="FIN", description="Money matters")
    await service.create_department(name="Logistics", code="LOG")

    with pytest.raises(ValidationError):
        await service.create_department(name="Finance again", code="FIN")

    updated = await service.update_department(finance.id, is_active=False)
    assert updated.is_active is False

    active = await service.list_departments()
    assert [d.code for d in active] == ["LOG"]
    everything = await service.list_departments(include_inactive=True)
    assert {d.code for d in everything} == {"FIN", "LOG"}


@pytest.mark.asyncio
async def test_update_missing_department(db_session):
    with pytest.raises(NotFoundError):
        await DepartmentService(db_session).update_department(uuid4(), name="Ghost")
