"""Error types.

Directory adapters raise DirectoryError subclasses; the application layer
translates them (and any other collaborator failure) into AccountError
subclasses that carry a message fit for display.
"""


class DirectoryError(Exception):
    """Base for errors reported by a remote directory adapter."""


class UserNotFound(DirectoryError):
    """The remote side has no user with the given id."""


class RequestRejected(DirectoryError):
    """The remote side explicitly refused the operation."""


class AccountError(Exception):
    message = "Something went wrong"

    def __str__(self) -> str:
        return self.message


class NotFound(AccountError):
    message = "Can't get profile"


class EmptyProfile(NotFound):
    message = "Can't get profile"


class RemovedAccount(NotFound):
    message = "You removed your profile"


class TransportFailure(AccountError):
    """Wraps a collaborator failure; the original is kept on .cause."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(cause)
        self.cause = cause

    def __str__(self) -> str:
        return str(self.cause) or type(self.cause).__name__


class OperationRejected(AccountError):
    message = "Operation was rejected"


class CantSendRequest(OperationRejected):
    message = "Can't send request"


class CantAcceptRequest(OperationRejected):
    message = "Can't accept request"


class CantDenyRequest(OperationRejected):
    message = "Can't deny request"


class CantCancelRequest(OperationRejected):
    message = "Can't cancel request"


class CantRemoveFriend(OperationRejected):
    message = "Can't remove friend"


class CantBlock(OperationRejected):
    message = "Can't block user"


class CantUnblock(OperationRejected):
    message = "Can't unblock user"


class CantEditAccount(OperationRejected):
    message = "Can't edit profile"


class CantRemoveAccount(OperationRejected):
    message = "Can't remove profile"


class CantRecoverAccount(OperationRejected):
    message = "Can't recover profile"


class InvalidCredentials(OperationRejected):
    message = "Wrong email or password"
