"""User-facing messages for authentication error codes."""

from typing import Optional

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."

AUTH_ERROR_MESSAGES: dict[str, str] = {
    "Configuration": "There is a problem with the server configuration.",
    "AccessDenied": "Access denied. You do not have permission to sign in.",
    "Verification": "The verification token has expired or has already been used.",
    "OAuthSignin": "Error in constructing an authorization URL.",
    "OAuthCallback": "Error in handling the response from an OAuth provider.",
    "OAuthCreateAccount": "Could not create OAuth provider user in the database.",
    "EmailCreateAccount": "Could not create email provider user in the database.",
    "Callback": "Error in the OAuth callback handler route.",
    "OAuthAccountNotLinked": (
        "The email on the account is already linked, but not with this OAuth account."
    ),
    "EMAIL_MISMATCH": (
        "The GitHub account email doesn't match your current account email. "
        "Please use a GitHub account with the same email address."
    ),
    "EmailSignin": "Sending the e-mail with the verification token failed.",
    "CredentialsSignin": "The authorize callback returned null in the Credentials provider.",
    "SessionRequired": "The content of this page requires you to be signed in at all times.",
}


def auth_error_message(code: Optional[str]) -> str:
    return AUTH_ERROR_MESSAGES.get(code or "", UNKNOWN_ERROR_MESSAGE)
