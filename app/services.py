"""
Domain services for accounts and messages.

The services decide whether a mutation is admissible and orchestrate the
Storage Gateway calls. Rules:

- username: present and not whitespace-only, unique across accounts
- password: present and at least 4 characters, compared verbatim on login
- message_text: present, not whitespace-only, at most 255 characters
- posted_by: must reference an existing account
"""

import logging
from typing import List, Optional

from fastapi import Depends

from app.errors import InvalidCredentials, StorageFailure, ValidationError
from app.results import StorageResult
from app.schemas import AccountRecord, MessageRecord
from app.storage import StorageGateway, get_gateway

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4
MAX_MESSAGE_LENGTH = 255


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _raise_on_failure(result: StorageResult, operation: str) -> None:
    if result.is_failure:
        logger.error(f"{operation}: storage failure")
        raise StorageFailure(f"{operation} failed")


def validate_message_text(message_text: Optional[str]) -> None:
    """Reject blank text or text longer than MAX_MESSAGE_LENGTH."""
    if _is_blank(message_text):
        raise ValidationError("message_text must not be blank")
    if len(message_text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"message_text must be at most {MAX_MESSAGE_LENGTH} characters")


class AccountService:
    """Registration and login."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    def get_account_by_username(self, username: str) -> Optional[AccountRecord]:
        result = self.gateway.get_account_by_username(username)
        _raise_on_failure(result, "get_account_by_username")
        return result.value

    def account_exists(self, username: str) -> bool:
        return self.get_account_by_username(username) is not None

    def register_account(self, username: Optional[str], password: Optional[str]) -> AccountRecord:
        """
        Register a new account.

        The prior lookup gives a clean error in the common case; the unique
        constraint on account.username is what actually decides concurrent
        registrations of the same name.

        Raises:
            ValidationError: blank username, short password or taken username
            StorageFailure: the store could not be queried or written
        """
        if _is_blank(username):
            raise ValidationError("username must not be blank")
        if password is None or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

        if self.account_exists(username):
            logger.info(f"Registration rejected, username taken: {username}")
            raise ValidationError("username already exists")

        result = self.gateway.insert_account(username, password)
        if result.is_conflict:
            logger.info(f"Registration lost race on username: {username}")
            raise ValidationError("username already exists")
        _raise_on_failure(result, "insert_account")

        logger.info(f"Account registered: account_id={result.value.account_id}")
        return result.value

    def login(self, username: Optional[str], password: Optional[str]) -> AccountRecord:
        """
        Return the account whose stored password equals the supplied one.

        Raises:
            InvalidCredentials: unknown username or wrong password
            StorageFailure: the store could not be queried
        """
        if username is None:
            raise InvalidCredentials("invalid username or password")

        account = self.get_account_by_username(username)
        if account is None or account.password != password:
            logger.info(f"Login rejected for username: {username}")
            raise InvalidCredentials("invalid username or password")
        return account


class MessageService:
    """Posting, reading, editing and deleting messages."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    def post_message(self, posted_by: int, message_text: Optional[str], time_posted_epoch: int) -> MessageRecord:
        """
        Persist a new message and return it with its generated message_id.

        Raises:
            ValidationError: invalid text or unknown posted_by
            StorageFailure: the store could not be queried or written
        """
        validate_message_text(message_text)

        exists = self.gateway.account_exists_by_id(posted_by)
        _raise_on_failure(exists, "account_exists_by_id")
        if not exists.value:
            raise ValidationError("posted_by does not reference an existing account")

        result = self.gateway.insert_message(posted_by, message_text, time_posted_epoch)
        if result.is_conflict:
            # account removed between the probe and the insert
            raise ValidationError("posted_by does not reference an existing account")
        _raise_on_failure(result, "insert_message")
        return result.value

    def get_all_messages(self) -> List[MessageRecord]:
        result = self.gateway.get_all_messages()
        _raise_on_failure(result, "get_all_messages")
        return result.value

    def get_message_by_id(self, message_id: int) -> Optional[MessageRecord]:
        result = self.gateway.get_message_by_id(message_id)
        _raise_on_failure(result, "get_message_by_id")
        return result.value

    def get_messages_by_account_id(self, account_id: int) -> List[MessageRecord]:
        result = self.gateway.get_messages_by_account_id(account_id)
        _raise_on_failure(result, "get_messages_by_account_id")
        return result.value

    def update_message(self, message_id: int, message_text: Optional[str]) -> MessageRecord:
        """
        Replace the text of an existing message.

        Validates the text, confirms the message exists, issues the update
        and returns the row as re-read from the store.

        Raises:
            ValidationError: invalid text or unknown message_id
            StorageFailure: the store could not be queried or written
        """
        validate_message_text(message_text)

        if self.get_message_by_id(message_id) is None:
            raise ValidationError("message not found")

        result = self.gateway.update_message(message_id, message_text)
        _raise_on_failure(result, "update_message")

        updated = self.get_message_by_id(message_id)
        if result.is_not_found or updated is None:
            raise ValidationError("message not found")
        return updated

    def delete_message(self, message_id: int) -> Optional[MessageRecord]:
        """Delete a message. None means there was nothing to delete."""
        result = self.gateway.delete_message_by_id(message_id)
        _raise_on_failure(result, "delete_message_by_id")
        return result.value


def get_account_service(gateway: StorageGateway = Depends(get_gateway)) -> AccountService:
    return AccountService(gateway)


def get_message_service(gateway: StorageGateway = Depends(get_gateway)) -> MessageService:
    return MessageService(gateway)
