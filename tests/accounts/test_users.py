from datetime import timedelta

import pytest

from accounts.auth.models import ANONYMOUS
from accounts.errors import (
    AuthorizationDenied,
    InvalidPassword,
    InvalidRedemptionCode,
    InvalidUsername,
    NotFound,
    ReservedPrefix,
    ReservedUsername,
    UserAlreadyExists,
)
from accounts.users import validate_username


class TestValidateUsername:
    @pytest.mark.parametrize("username", ["bob", "bob.smith", "b-0_b", "a1b"])
    def test_valid(self, username):
        validate_username(username)

    @pytest.mark.parametrize(
        "username", ["ab", "Bob", "-bob", "bob.", "bob smith", "bob@x", "x" * 51]
    )
    def test_invalid(self, username):
        with pytest.raises(InvalidUsername):
            validate_username(username)

    def test_reserved(self):
        with pytest.raises(ReservedUsername):
            validate_username("root")

    def test_group_prefix(self):
        with pytest.raises(ReservedPrefix):
            validate_username("group-admins")


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_anonymous_can_create_user(self, user_service, repository, hasher):
        user = await user_service.create_user(
            ANONYMOUS, "newbie", "pa55word", "newbie@example.org", "New", "Bie"
        )

        stored = await repository.get_user(user.id)
        assert stored.username == "newbie"
        assert stored.password_hash != "pa55word"
        assert hasher.verify("pa55word", stored.password_hash)

    @pytest.mark.asyncio
    async def test_taken_username(self, user_service, make_user):
        await make_user("bob")

        with pytest.raises(UserAlreadyExists):
            await user_service.check_username(ANONYMOUS, "bob")
        with pytest.raises(UserAlreadyExists):
            await user_service.create_user(ANONYMOUS, "bob", "pw", "bob2@example.org")

    @pytest.mark.asyncio
    async def test_invalid_username_creates_nothing(self, user_service, repository):
        with pytest.raises(InvalidUsername):
            await user_service.create_user(ANONYMOUS, "admin", "pw", "a@example.org")

        assert await repository.find_user_by_username("admin") is None


class TestGetUserByUsername:
    @pytest.mark.asyncio
    async def test_own_profile(self, user_service, make_user, as_principal):
        bob = await make_user("bob")

        user = await user_service.get_user_by_username(as_principal(bob), "bob")

        assert user.id == bob.id

    @pytest.mark.asyncio
    async def test_other_profile_denied(self, user_service, make_user, as_principal):
        bob = await make_user("bob")
        await make_user("carol")

        with pytest.raises(AuthorizationDenied):
            await user_service.get_user_by_username(as_principal(bob), "carol")

    @pytest.mark.asyncio
    async def test_root_sees_anyone(self, user_service, make_user, as_principal):
        root = await make_user("rooty", root=True)
        await make_user("carol")

        user = await user_service.get_user_by_username(as_principal(root), "carol")
        assert user.username == "carol"

        with pytest.raises(NotFound):
            await user_service.get_user_by_username(as_principal(root), "nobody")


class TestChangePassword:
    @pytest.mark.asyncio
    async def test_change_own_password(
        self, user_service, make_user, repository, hasher, as_principal
    ):
        bob = await make_user("bob", password="old-pass")

        await user_service.change_password(as_principal(bob), bob.id, "old-pass", "new-pass")

        stored = await repository.get_user(bob.id)
        assert hasher.verify("new-pass", stored.password_hash)

    @pytest.mark.asyncio
    async def test_wrong_old_password(
        self, user_service, make_user, repository, hasher, as_principal
    ):
        bob = await make_user("bob", password="old-pass")

        with pytest.raises(InvalidPassword):
            await user_service.change_password(as_principal(bob), bob.id, "wrong", "new-pass")

        stored = await repository.get_user(bob.id)
        assert hasher.verify("old-pass", stored.password_hash)

    @pytest.mark.asyncio
    async def test_cannot_change_someone_elses_password(
        self, user_service, make_user, as_principal
    ):
        bob = await make_user("bob")
        carol = await make_user("carol")

        with pytest.raises(AuthorizationDenied):
            await user_service.change_password(
                as_principal(bob), carol.id, "secret-pass", "new-pass"
            )


class TestUpdateUserDetails:
    @pytest.mark.asyncio
    async def test_update_own_details(
        self, user_service, make_user, repository, hasher, as_principal
    ):
        bob = await make_user("bob", password="bobs-pass")

        updated = await user_service.update_user_details(
            as_principal(bob), bob.id, "Robert", "Smith", "robert@example.org"
        )

        stored = await repository.get_user(bob.id)
        assert stored == updated
        assert (stored.first_name, stored.last_name, stored.email) == (
            "Robert",
            "Smith",
            "robert@example.org",
        )
        assert stored.username == "bob"
        assert hasher.verify("bobs-pass", stored.password_hash)

    @pytest.mark.asyncio
    async def test_cannot_update_someone_else(
        self, user_service, make_user, repository, as_principal
    ):
        bob = await make_user("bob")
        carol = await make_user("carol")

        with pytest.raises(AuthorizationDenied):
            await user_service.update_user_details(
                as_principal(bob), carol.id, "Mallory", None, "mallory@example.org"
            )

        assert (await repository.get_user(carol.id)).email == "carol@example.org"

    @pytest.mark.asyncio
    async def test_root_cannot_update_someone_else(
        self, user_service, make_user, as_principal
    ):
        root = await make_user("rooty", root=True)
        carol = await make_user("carol")

        with pytest.raises(AuthorizationDenied):
            await user_service.update_user_details(
                as_principal(root), carol.id, None, None, "carol@example.com"
            )


class TestForgotPassword:
    @pytest.mark.asyncio
    async def test_reset_flow(self, user_service, make_user, repository, hasher, notifier):
        bob = await make_user("bob", password="forgotten")

        invitation = await user_service.forgot_password(ANONYMOUS, "bob")
        notifier.send.assert_awaited_once()

        retrieved = await user_service.retrieve_password_change_invitation(
            ANONYMOUS, invitation.redemption_code
        )
        assert retrieved.user_id == bob.id

        await user_service.redeem_password_change(
            ANONYMOUS, invitation.redemption_code, "brand-new"
        )

        stored = await repository.get_user(bob.id)
        assert hasher.verify("brand-new", stored.password_hash)
        with pytest.raises(InvalidRedemptionCode):
            await user_service.redeem_password_change(
                ANONYMOUS, invitation.redemption_code, "again"
            )

    @pytest.mark.asyncio
    async def test_unknown_user(self, user_service, notifier):
        with pytest.raises(NotFound):
            await user_service.forgot_password(ANONYMOUS, "nobody")
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_code_is_removed(self, user_service, make_user, repository, clock):
        await make_user("bob")
        invitation = await user_service.forgot_password(ANONYMOUS, "bob")

        clock.current += timedelta(days=30)
        with pytest.raises(InvalidRedemptionCode):
            await user_service.redeem_password_change(
                ANONYMOUS, invitation.redemption_code, "brand-new"
            )

        assert await repository.find_invitation_by_code(invitation.redemption_code) is None
