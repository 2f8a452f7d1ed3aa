import pytest
from postgrest.exceptions import APIError

from coursepay.enrollment.errors import SetupRequired
from coursepay.payments.probe import check_enrollment_storage


def _raise(code):
    def _probe():
        raise APIError({"code": code, "message": "relation does not exist", "details": None, "hint": None})
    return _probe


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["PGRST116", "PGRST205", "42P01"])
async def test_missing_table_requires_setup(code):
    with pytest.raises(SetupRequired) as exc:
        await check_enrollment_storage(_raise(code))
    assert exc.value.message.startswith("Database setup required")
    assert exc.value.retryable is False


@pytest.mark.asyncio
async def test_other_storage_errors_do_not_block():
    await check_enrollment_storage(_raise("42501"))


@pytest.mark.asyncio
async def test_unexpected_exception_does_not_block():
    def _probe():
        raise TimeoutError("slow network")

    await check_enrollment_storage(_probe)


@pytest.mark.asyncio
async def test_provisioned_storage_passes():
    calls = []
    await check_enrollment_storage(lambda: calls.append("probe"))
    assert calls == ["probe"]
