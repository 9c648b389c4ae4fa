import pytest

from sms_dispatch.domain.errors import TemplateNotFoundError
from sms_dispatch.domain.models import DeliveryRecord
from sms_dispatch.infrastructure.adapters import (
    InMemoryContactGroupResolver,
    InMemoryDeliveryRecordRepository,
    InMemoryTemplateResolver,
)
from sms_dispatch.infrastructure.adapters.memory import render_template


def test_render_template_tolerates_spacing():
    assert render_template("Hi {{ name }}, {{name}}!", {"name": "Ana"}) == "Hi Ana, Ana!"


def test_render_template_leaves_unknown_placeholders():
    assert render_template("Code {{code}}", {}) == "Code {{code}}"


class TestTemplateResolver:
    @pytest.mark.asyncio
    async def test_resolves_default_template(self):
        resolver = InMemoryTemplateResolver()
        body = await resolver.resolve("welcome", {"name": "Ana", "company": "Acme"})
        assert body == "Welcome Ana to Acme! Your account is now active."

    @pytest.mark.asyncio
    async def test_unknown_template(self):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            await InMemoryTemplateResolver({}).resolve("welcome", None)
        assert exc_info.value.template_id == "welcome"


class TestContactGroupResolver:
    @pytest.mark.asyncio
    async def test_expands_in_order_and_skips_unknown(self):
        resolver = InMemoryContactGroupResolver({"a": ["+1", "+2"], "b": ["+3"]})
        assert await resolver.expand(["b", "missing", "a"]) == ["+3", "+1", "+2"]


class TestDeliveryRecordRepository:
    @pytest.mark.asyncio
    async def test_load_by_id_and_message_id(self):
        repo = InMemoryDeliveryRecordRepository()
        record = DeliveryRecord.outbound("+3551", "Hi", "twilio")
        record.provider_message_id = "SM1"
        await repo.save(record)

        assert await repo.load(record.id) is record
        assert await repo.load("SM1") is record
        assert await repo.load("missing") is None

    @pytest.mark.asyncio
    async def test_session_id_collision_prefers_newest(self):
        repo = InMemoryDeliveryRecordRepository()
        older = DeliveryRecord.outbound("+3551", "Hi", "gateway")
        newer = DeliveryRecord.outbound("+3552", "Hi", "gateway")
        older.session_id = newer.session_id = 4321
        await repo.save(older)
        await repo.save(newer)

        assert await repo.load(4321) is newer
