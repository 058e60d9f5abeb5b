"""Custom exception types for domain and API layers."""


class AppError(Exception):
    """Base app exception. The message is shown to users verbatim."""

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class IntegrationError(AppError):
    """External integration call failure."""


class AuthenticationError(AppError):
    """Identity provider rejected the request."""
