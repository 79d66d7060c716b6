from datetime import datetime, timedelta, timezone

import pytest

from accounts.auth.roles import Role, account_role_set
from accounts.errors import DuplicateRedemptionCode, NotFound
from accounts.models import AccountRights, UserInvitation

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def invitation(account_id, code, email="a@example.org"):
    return UserInvitation(
        account_id=account_id,
        user_email=email,
        admin_username="alice",
        redemption_code=code,
        creation_date=NOW,
        expiration_date=NOW + timedelta(days=14),
    )


class TestUsersAndAccounts:
    @pytest.mark.asyncio
    async def test_save_and_get_user(self, repository, make_user):
        user = await make_user("bob", root=True)

        stored = await repository.get_user(user.id)

        assert stored == user
        assert stored.root is True
        assert (await repository.find_user_by_username("bob")).id == user.id

    @pytest.mark.asyncio
    async def test_update_user(self, repository, make_user):
        user = await make_user("bob")

        await repository.save_user(user.model_copy(update={"last_name": "Smith"}))

        assert (await repository.get_user(user.id)).last_name == "Smith"

    @pytest.mark.asyncio
    async def test_missing_rows(self, repository):
        with pytest.raises(NotFound):
            await repository.get_user(1)
        with pytest.raises(NotFound):
            await repository.get_account(1)
        assert await repository.find_user_by_username("nobody") is None

    @pytest.mark.asyncio
    async def test_save_and_get_account(self, repository, make_account):
        account = await make_account("acme")

        stored = await repository.get_account(account.id)

        assert stored.subdomain == "acme"
        assert stored.acct_name == "Acme Account"


class TestRights:
    @pytest.mark.asyncio
    async def test_one_record_per_user_and_account(self, repository, make_user, make_account):
        user = await make_user("bob")
        account = await make_account()

        first = await repository.save_rights(
            AccountRights(account_id=account.id, user_id=user.id, roles=account_role_set([Role.ROLE_USER]))
        )
        second = await repository.save_rights(
            AccountRights(account_id=account.id, user_id=user.id, roles=account_role_set([Role.ROLE_ADMIN]))
        )

        assert second.id == first.id
        assert second.roles == {Role.ROLE_ADMIN, Role.ROLE_USER}
        assert len(await repository.find_rights_by_account(account.id)) == 1
        assert len(await repository.find_rights_by_user(user.id)) == 1

    @pytest.mark.asyncio
    async def test_delete_rights(self, repository, make_user, make_account, give_role):
        user = await make_user("bob")
        account = await make_account()
        rights = await give_role(account, user, Role.ROLE_USER)

        await repository.delete_rights(rights)

        assert await repository.find_rights(account.id, user.id) is None


class TestInvitations:
    @pytest.mark.asyncio
    async def test_save_and_find(self, repository, make_account):
        account = await make_account()

        saved = await repository.save_invitation(invitation(account.id, "code-1"))
        found = await repository.find_invitation_by_code("code-1")

        assert found == saved
        assert found.expiration_date == NOW + timedelta(days=14)
        assert await repository.find_invitations_by_account(account.id) == [saved]

    @pytest.mark.asyncio
    async def test_duplicate_code(self, repository, make_account):
        account = await make_account()
        await repository.save_invitation(invitation(account.id, "code-1"))

        with pytest.raises(DuplicateRedemptionCode):
            await repository.save_invitation(invitation(account.id, "code-1", "b@example.org"))

    @pytest.mark.asyncio
    async def test_delete_missing_invitation_is_noop(self, repository):
        await repository.delete_invitation(42)


class TestTransaction:
    @pytest.mark.asyncio
    async def test_commit(self, repository, make_account):
        account = await make_account()

        async with repository.transaction():
            saved = await repository.save_invitation(invitation(account.id, "code-1"))

        assert await repository.find_invitation_by_code("code-1") == saved

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, repository, make_account):
        account = await make_account()

        with pytest.raises(RuntimeError):
            async with repository.transaction():
                await repository.save_invitation(invitation(account.id, "code-1"))
                raise RuntimeError("abort")

        assert await repository.find_invitation_by_code("code-1") is None

    @pytest.mark.asyncio
    async def test_nested_transaction_joins_outer(self, repository, make_account):
        account = await make_account()

        with pytest.raises(RuntimeError):
            async with repository.transaction():
                async with repository.transaction():
                    await repository.save_invitation(invitation(account.id, "code-1"))
                raise RuntimeError("abort")

        assert await repository.find_invitation_by_code("code-1") is None
