import os
from os.path import join

root_dir = os.path.dirname(os.path.abspath(__file__))

users_table_name = "users"
accounts_table_name = "accounts"
account_rights_table_name = "account_rights"
user_invitations_table_name = "user_invitations"

DEFAULT_DB_PATH = join(root_dir, "db", "accounts.db")
DEFAULT_LOG_FILE_PATH = join(root_dir, "logs", "backend.log")
DEFAULT_DB_LOG_FILE_PATH = join(root_dir, "logs", "db.log")

DEFAULT_INVITATION_VALIDITY_DAYS = 14

# Usernames may not start with the prefix reserved for group names.
GROUP_PREFIX = "group-"

RESERVED_USERNAMES = {
    "admin",
    "administrator",
    "anonymous",
    "root",
    "system",
    "superuser",
    "support",
}

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
