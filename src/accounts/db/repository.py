from typing import AsyncContextManager, List, Optional, Protocol

from accounts.models import Account, AccountRights, User, UserInvitation


class Repository(Protocol):
    """Storage collaborator used by the authorization and invitation core.

    Lookups return ``None`` (or an empty list) when nothing matches; ``get_*``
    lookups raise ``NotFound``. Every call may raise ``StorageUnavailable``.
    Calls made inside ``transaction()`` form one atomic unit.
    """

    def transaction(self) -> AsyncContextManager[None]: ...

    # users and accounts
    async def get_user(self, user_id: int) -> User: ...

    async def find_user_by_username(self, username: str) -> Optional[User]: ...

    async def save_user(self, user: User) -> User: ...

    async def get_account(self, account_id: int) -> Account: ...

    async def save_account(self, account: Account) -> Account: ...

    # rights
    async def find_rights(self, account_id: int, user_id: int) -> Optional[AccountRights]: ...

    async def find_rights_by_account(self, account_id: int) -> List[AccountRights]: ...

    async def find_rights_by_user(self, user_id: int) -> List[AccountRights]: ...

    async def save_rights(self, rights: AccountRights) -> AccountRights: ...

    async def delete_rights(self, rights: AccountRights) -> None: ...

    # invitations
    async def find_invitation_by_code(self, code: str) -> Optional[UserInvitation]: ...

    async def find_invitations_by_account(self, account_id: int) -> List[UserInvitation]: ...

    async def save_invitation(self, invitation: UserInvitation) -> UserInvitation: ...

    async def delete_invitation(self, invitation_id: int) -> None: ...
