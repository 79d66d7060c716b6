import sqlite3
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Iterable, List, Optional

import aiosqlite

from accounts.auth.roles import Role
from accounts.config import (
    account_rights_table_name,
    accounts_table_name,
    user_invitations_table_name,
    users_table_name,
)
from accounts.errors import DuplicateRedemptionCode, NotFound
from accounts.models import Account, AccountRights, User, UserInvitation
from accounts.utils.db import (
    execute_db_operation,
    execute_multiple_db_operations,
    get_new_db_connection,
)
from accounts.utils.logging import db_logger

USER_COLUMNS = "id, username, email, first_name, last_name, password_hash, root"
ACCOUNT_COLUMNS = "id, subdomain, acct_name, org_name, department"
RIGHTS_COLUMNS = "id, account_id, user_id, roles"
INVITATION_COLUMNS = (
    "id, account_id, user_id, user_email, admin_username, redemption_code, "
    "creation_date, expiration_date"
)


def _serialize_roles(roles: Iterable[Role]) -> str:
    return ",".join(r.value for r in sorted(roles, key=lambda r: r.level))


def _deserialize_roles(value: str | None) -> frozenset:
    return frozenset(Role(r) for r in (value or "").split(",") if r)


def _row_to_user(row) -> User:
    return User(
        id=row[0],
        username=row[1],
        email=row[2],
        first_name=row[3],
        last_name=row[4],
        password_hash=row[5] or "",
        root=bool(row[6]),
    )


def _row_to_account(row) -> Account:
    return Account(
        id=row[0], subdomain=row[1], acct_name=row[2], org_name=row[3], department=row[4]
    )


def _row_to_rights(row) -> AccountRights:
    return AccountRights(
        id=row[0], account_id=row[1], user_id=row[2], roles=_deserialize_roles(row[3])
    )


def _row_to_invitation(row) -> UserInvitation:
    return UserInvitation(
        id=row[0],
        account_id=row[1],
        user_id=row[2],
        user_email=row[3],
        admin_username=row[4],
        redemption_code=row[5],
        creation_date=datetime.fromisoformat(row[6]),
        expiration_date=datetime.fromisoformat(row[7]),
    )


class SqliteRepository:
    """aiosqlite-backed repository.

    Outside ``transaction()`` every call opens its own connection and
    autocommits. Inside it, calls made by the same task share the
    transaction's connection.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._txn_conn: ContextVar[Optional[aiosqlite.Connection]] = ContextVar(
            f"txn_conn_{id(self)}", default=None
        )

    @asynccontextmanager
    async def _connection(self):
        conn = self._txn_conn.get()
        if conn is not None:
            yield conn
            return

        async with get_new_db_connection(self.db_path) as conn:
            yield conn

    async def _execute(self, query: str, params: tuple = (), **kwargs):
        async with self._connection() as conn:
            return await execute_db_operation(conn, query, params, **kwargs)

    @asynccontextmanager
    async def transaction(self):
        if self._txn_conn.get() is not None:
            # already inside a transaction started by this task
            yield
            return

        async with get_new_db_connection(self.db_path) as conn:
            token = self._txn_conn.set(conn)
            try:
                await execute_db_operation(conn, "BEGIN IMMEDIATE")
                try:
                    yield
                except BaseException:
                    await execute_db_operation(conn, "ROLLBACK")
                    raise
                await execute_db_operation(conn, "COMMIT")
            finally:
                self._txn_conn.reset(token)

    async def initialize(self):
        """Create the tables if they do not exist yet."""
        async with self._connection() as conn:
            await execute_multiple_db_operations(
                conn,
                [
                    (
                        f"""CREATE TABLE IF NOT EXISTS {users_table_name} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            username TEXT NOT NULL UNIQUE,
                            email TEXT NOT NULL,
                            first_name TEXT,
                            last_name TEXT,
                            password_hash TEXT NOT NULL DEFAULT '',
                            root INTEGER NOT NULL DEFAULT 0,
                            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                        )""",
                        (),
                    ),
                    (
                        f"""CREATE TABLE IF NOT EXISTS {accounts_table_name} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            subdomain TEXT NOT NULL UNIQUE,
                            acct_name TEXT NOT NULL,
                            org_name TEXT,
                            department TEXT,
                            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                        )""",
                        (),
                    ),
                    (
                        f"""CREATE TABLE IF NOT EXISTS {account_rights_table_name} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            account_id INTEGER NOT NULL,
                            user_id INTEGER NOT NULL,
                            roles TEXT NOT NULL,
                            UNIQUE(user_id, account_id),
                            FOREIGN KEY (account_id) REFERENCES {accounts_table_name}(id) ON DELETE CASCADE,
                            FOREIGN KEY (user_id) REFERENCES {users_table_name}(id) ON DELETE CASCADE
                        )""",
                        (),
                    ),
                    (
                        f"""CREATE TABLE IF NOT EXISTS {user_invitations_table_name} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            account_id INTEGER,
                            user_id INTEGER,
                            user_email TEXT NOT NULL,
                            admin_username TEXT,
                            redemption_code TEXT NOT NULL UNIQUE,
                            creation_date TEXT NOT NULL,
                            expiration_date TEXT NOT NULL,
                            FOREIGN KEY (account_id) REFERENCES {accounts_table_name}(id) ON DELETE CASCADE
                        )""",
                        (),
                    ),
                    (
                        f"CREATE INDEX IF NOT EXISTS idx_invitations_account_id ON {user_invitations_table_name} (account_id)",
                        (),
                    ),
                ],
            )

        db_logger.info(f"Initialized database at {self.db_path}")

    # users and accounts

    async def get_user(self, user_id: int) -> User:
        row = await self._execute(
            f"SELECT {USER_COLUMNS} FROM {users_table_name} WHERE id = ?",
            (user_id,),
            fetch_one=True,
        )
        if not row:
            raise NotFound(f"User {user_id} not found")

        return _row_to_user(row)

    async def find_user_by_username(self, username: str) -> Optional[User]:
        row = await self._execute(
            f"SELECT {USER_COLUMNS} FROM {users_table_name} WHERE username = ?",
            (username,),
            fetch_one=True,
        )
        return _row_to_user(row) if row else None

    async def save_user(self, user: User) -> User:
        params = (
            user.username,
            user.email,
            user.first_name,
            user.last_name,
            user.password_hash,
            int(user.root),
        )

        if user.id is None:
            user_id = await self._execute(
                f"""
                INSERT INTO {users_table_name} (username, email, first_name, last_name, password_hash, root)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                params,
                get_last_row_id=True,
            )
            return user.model_copy(update={"id": user_id})

        await self._execute(
            f"""
            UPDATE {users_table_name}
            SET username = ?, email = ?, first_name = ?, last_name = ?, password_hash = ?, root = ?
            WHERE id = ?
            """,
            params + (user.id,),
        )
        return user

    async def get_account(self, account_id: int) -> Account:
        row = await self._execute(
            f"SELECT {ACCOUNT_COLUMNS} FROM {accounts_table_name} WHERE id = ?",
            (account_id,),
            fetch_one=True,
        )
        if not row:
            raise NotFound(f"Account {account_id} not found")

        return _row_to_account(row)

    async def save_account(self, account: Account) -> Account:
        params = (account.subdomain, account.acct_name, account.org_name, account.department)

        if account.id is None:
            account_id = await self._execute(
                f"""
                INSERT INTO {accounts_table_name} (subdomain, acct_name, org_name, department)
                VALUES (?, ?, ?, ?)
                """,
                params,
                get_last_row_id=True,
            )
            return account.model_copy(update={"id": account_id})

        await self._execute(
            f"""
            UPDATE {accounts_table_name}
            SET subdomain = ?, acct_name = ?, org_name = ?, department = ?
            WHERE id = ?
            """,
            params + (account.id,),
        )
        return account

    # rights

    async def find_rights(self, account_id: int, user_id: int) -> Optional[AccountRights]:
        row = await self._execute(
            f"SELECT {RIGHTS_COLUMNS} FROM {account_rights_table_name} WHERE account_id = ? AND user_id = ?",
            (account_id, user_id),
            fetch_one=True,
        )
        return _row_to_rights(row) if row else None

    async def find_rights_by_account(self, account_id: int) -> List[AccountRights]:
        rows = await self._execute(
            f"SELECT {RIGHTS_COLUMNS} FROM {account_rights_table_name} WHERE account_id = ? ORDER BY id",
            (account_id,),
            fetch_all=True,
        )
        return [_row_to_rights(row) for row in rows]

    async def find_rights_by_user(self, user_id: int) -> List[AccountRights]:
        rows = await self._execute(
            f"SELECT {RIGHTS_COLUMNS} FROM {account_rights_table_name} WHERE user_id = ? ORDER BY id",
            (user_id,),
            fetch_all=True,
        )
        return [_row_to_rights(row) for row in rows]

    async def save_rights(self, rights: AccountRights) -> AccountRights:
        # one record per (user, account): an insert for an existing pair updates it
        await self._execute(
            f"""
            INSERT INTO {account_rights_table_name} (account_id, user_id, roles)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id, account_id) DO UPDATE SET roles = excluded.roles
            """,
            (rights.account_id, rights.user_id, _serialize_roles(rights.roles)),
        )
        return await self.find_rights(rights.account_id, rights.user_id)

    async def delete_rights(self, rights: AccountRights) -> None:
        await self._execute(
            f"DELETE FROM {account_rights_table_name} WHERE account_id = ? AND user_id = ?",
            (rights.account_id, rights.user_id),
        )

    # invitations

    async def find_invitation_by_code(self, code: str) -> Optional[UserInvitation]:
        row = await self._execute(
            f"SELECT {INVITATION_COLUMNS} FROM {user_invitations_table_name} WHERE redemption_code = ?",
            (code,),
            fetch_one=True,
        )
        return _row_to_invitation(row) if row else None

    async def find_invitations_by_account(self, account_id: int) -> List[UserInvitation]:
        rows = await self._execute(
            f"SELECT {INVITATION_COLUMNS} FROM {user_invitations_table_name} WHERE account_id = ? ORDER BY id",
            (account_id,),
            fetch_all=True,
        )
        return [_row_to_invitation(row) for row in rows]

    async def save_invitation(self, invitation: UserInvitation) -> UserInvitation:
        try:
            invitation_id = await self._execute(
                f"""
                INSERT INTO {user_invitations_table_name}
                    (account_id, user_id, user_email, admin_username, redemption_code, creation_date, expiration_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invitation.account_id,
                    invitation.user_id,
                    invitation.user_email,
                    invitation.admin_username,
                    invitation.redemption_code,
                    invitation.creation_date.isoformat(),
                    invitation.expiration_date.isoformat(),
                ),
                get_last_row_id=True,
            )
        except sqlite3.IntegrityError as e:
            if "redemption_code" in str(e):
                raise DuplicateRedemptionCode(str(e)) from e
            raise

        return invitation.model_copy(update={"id": invitation_id})

    async def delete_invitation(self, invitation_id: int) -> None:
        await self._execute(
            f"DELETE FROM {user_invitations_table_name} WHERE id = ?",
            (invitation_id,),
        )
