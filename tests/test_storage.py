"""
Tests for row translation and the in-memory store.
"""

from datetime import timedelta

import pytest

from taskmanager.core.models import LinkCode
from taskmanager.storage import (
    DiscordIdentityConflictError,
    InMemoryStore,
    project_from_row,
    user_from_row,
)

from conftest import DISCORD_ID, OTHER_DISCORD_ID, START


class TestRowTranslation:
    def test_integer_flags(self):
        user = user_from_row({"id": "u1", "username": "u1", "is_admin": 1, "discord_verified": 0})
        assert user.is_admin is True
        assert user.discord_verified is False

    def test_string_and_bool_flags(self):
        assert user_from_row({"id": "u1", "is_admin": "true"}).is_admin
        assert user_from_row({"id": "u1", "is_admin": False}).is_admin is False

    def test_extra_columns_dropped(self):
        user = user_from_row({"id": "u1", "username": "u1", "password_hash": "x", "email": ""})
        assert user.email is None
        assert not hasattr(user, "password_hash")

    def test_name_falls_back_to_username(self):
        assert user_from_row({"id": "u1", "username": "u1"}).name == "u1"

    def test_inline_members(self):
        project = project_from_row({
            "id": "p1",
            "owner_id": "alice",
            "members": ["bob", {"user_id": "carol"}, {"id": "dave"}, None],
        })
        assert project.member_ids == frozenset({"bob", "carol", "dave"})

    def test_inline_and_normalized_members_merge(self):
        project = project_from_row(
            {"id": "p1", "owner_id": "alice", "members": ["bob"]},
            [{"project_id": "p1", "user_id": "carol"}],
        )
        assert project.has_member("bob")
        assert project.has_member("carol")
        assert project.is_owner("alice")


# =============================================================================
# In-Memory Store
# =============================================================================


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_missing_rows(self):
        store = InMemoryStore()
        assert await store.find_user_by_id("nobody") is None
        assert await store.find_project_by_id("nothing") is None
        assert await store.list_project_member_ids("nothing") == []

    @pytest.mark.asyncio
    async def test_member_ids(self, store):
        assert await store.list_project_member_ids("p1") == ["carol"]
        store.add_project_member("p1", "bob")
        assert await store.list_project_member_ids("p1") == ["bob", "carol"]

    def test_duplicate_discord_id_on_seed(self, store):
        with pytest.raises(DiscordIdentityConflictError):
            store.add_user({"id": "zed", "discord_user_id": OTHER_DISCORD_ID})

    @pytest.mark.asyncio
    async def test_bind_conflict(self, store):
        with pytest.raises(DiscordIdentityConflictError):
            await store.bind_discord_identity("alice", OTHER_DISCORD_ID)

    @pytest.mark.asyncio
    async def test_bind_and_clear(self, store):
        await store.bind_discord_identity("alice", DISCORD_ID, "alice#0001")
        assert (await store.find_user_by_discord_id(DISCORD_ID)).id == "alice"

        await store.clear_discord_identity("alice")
        assert await store.find_user_by_discord_id(DISCORD_ID) is None

    @pytest.mark.asyncio
    async def test_mark_used_is_compare_and_set(self, store):
        await store.save_link_code(
            LinkCode(code="LINK-ABCDE", user_id="alice", expires_at=START + timedelta(minutes=5), created_at=START)
        )

        assert await store.mark_link_code_used("LINK-ABCDE") is True
        assert await store.mark_link_code_used("LINK-ABCDE") is False
        assert await store.mark_link_code_used("LINK-NOPE1") is False
        assert (await store.get_link_code("LINK-ABCDE")).used

    @pytest.mark.asyncio
    async def test_delete_unused_keeps_used_codes(self, store):
        expires = START + timedelta(minutes=5)
        await store.save_link_code(LinkCode(code="LINK-AAAAA", user_id="alice", expires_at=expires, created_at=START))
        await store.save_link_code(LinkCode(code="LINK-BBBBB", user_id="alice", expires_at=expires, created_at=START))
        await store.save_link_code(LinkCode(code="LINK-CCCCC", user_id="bob", expires_at=expires, created_at=START))
        await store.mark_link_code_used("LINK-BBBBB")

        assert await store.delete_unused_link_codes("alice") == 1
        assert not await store.link_code_exists("LINK-AAAAA")
        assert await store.link_code_exists("LINK-BBBBB")
        assert await store.link_code_exists("LINK-CCCCC")

    @pytest.mark.asyncio
    async def test_writes_are_stamped_with_store_clock(self, store, clock):
        clock.advance(seconds=90)

        await store.bind_discord_identity("alice", DISCORD_ID)

        alice = await store.find_user_by_id("alice")
        assert alice.updated_at == START + timedelta(seconds=90)
