ACCESS_TOKEN_EXPIRE_MINUTES = 60
JWT_ALGORITHM = "HS256"

# Role hierarchy: higher roles implicitly satisfy lower role checks.
# e.g. a check for "ROLE_ADMIN" also passes for "ROLE_OWNER".
ROLE_HIERARCHY = {
    "ROLE_ROOT": 5,
    "ROLE_OWNER": 4,
    "ROLE_ADMIN": 3,
    "ROLE_USER": 2,
    "ROLE_ANONYMOUS": 1,
}

# Attempts at generating a unique invitation redemption code.
MAX_CODE_ATTEMPTS = 5

ROOT_ANY = "role:ROLE_ROOT,scope:ANY"

# Operation name -> secured rules. Any one satisfied rule authorizes the call.
OPERATION_RULES = {
    # users
    "check_username": ["role:ROLE_ANONYMOUS,scope:ANY"],
    "create_user": ["role:ROLE_ANONYMOUS,scope:ANY"],
    "get_user_by_username": ["role:ROLE_USER,scope:SELF_NAME", ROOT_ANY],
    "change_password": ["role:ROLE_USER,scope:SELF_ID"],
    "update_user_details": ["role:ROLE_USER,scope:SELF_ID"],
    "forgot_password": ["role:ROLE_ANONYMOUS,scope:ANY"],
    "retrieve_password_change_invitation": ["role:ROLE_ANONYMOUS,scope:ANY"],
    "redeem_password_change": ["role:ROLE_ANONYMOUS,scope:ANY"],
    # accounts
    "get_account": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    "update_account_info": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    # account rights
    "grant_role": ["role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE", ROOT_ANY],
    "add_user_to_account": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    "revoke_all_rights": ["role:ROLE_ADMIN,scope:SELF_ACCT_PEER", ROOT_ANY],
    "list_members": ["role:ROLE_USER,scope:SELF_ACCT", ROOT_ANY],
    # invitations
    "invite_users": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    "list_pending_invitations": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    "delete_pending_invitation": ["role:ROLE_ADMIN,scope:SELF_ACCT", ROOT_ANY],
    "redeem_account_invitation": ["role:ROLE_USER,scope:SELF_ID"],
}
