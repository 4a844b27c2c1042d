from typing import Generic, TypeVar, Optional, Any, Dict, Union
from http import HTTPStatus

T = TypeVar('T')  # Generic type variable


class ErrorType:
    """Classification of failed operations surfaced to API callers."""
    VALIDATION = "ValidationError"
    DECODE = "DecodeError"
    PERSISTENCE = "PersistenceError"
    SERVER = "ServerError"


class Result(Generic[T]):
    """
    A generic result class that represents the outcome of an operation.

    Course submission and listing never raise to the HTTP layer; every step
    returns a Result carrying either the data or a classified error.

    Attributes:
        success (bool): Indicates if the operation was successful
        data (Optional[T]): The result data (only present when success is True)
        error (Optional[str]): Human-readable error message (only present when success is False)
        error_type (Optional[str]): One of the ErrorType values for failed results
        status_code (HTTPStatus): HTTP status code (default: 200 for success, 400 for failure)
    """
    def __init__(
        self,
        success: bool,
        data: Optional[T] = None,
        error: Optional[str] = None,
        status_code: Optional[Union[int, HTTPStatus]] = None,
        error_type: Optional[str] = None
    ):
        self.success = success
        self.data = data
        self.error = error
        self.error_type = error_type

        if status_code is None:
            self.status_code = HTTPStatus.OK if success else HTTPStatus.BAD_REQUEST
        else:
            self.status_code = HTTPStatus(status_code)

    @classmethod
    def ok(cls, data: T, status_code: Optional[Union[int, HTTPStatus]] = HTTPStatus.OK) -> "Result[T]":
        """
        Create a successful Result with the provided data.

        Args:
            data (T): The data to be wrapped in the Result
            status_code (Optional[Union[int, HTTPStatus]], optional): HTTP status code. Defaults to 200 OK.

        Returns:
            Result[T]: A successful Result containing the provided data
        """
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(
        cls,
        error: str,
        status_code: Optional[Union[int, HTTPStatus]] = HTTPStatus.BAD_REQUEST,
        error_type: Optional[str] = None
    ) -> "Result[T]":
        """
        Create a failed Result with the provided error message.

        Args:
            error (str): The error message describing the failure
            status_code (Optional[Union[int, HTTPStatus]], optional): HTTP status code. Defaults to 400 BAD_REQUEST.
            error_type (Optional[str], optional): Classification of the failure

        Returns:
            Result[T]: A failed Result containing the error message
        """
        return cls(success=False, error=error, status_code=status_code, error_type=error_type)

    @classmethod
    def validation_error(cls, error: str = "Invalid input data") -> "Result[T]":
        """Missing course metadata or file payload (400)."""
        return cls.fail(error, HTTPStatus.BAD_REQUEST, ErrorType.VALIDATION)

    @classmethod
    def decode_error(cls, error: str = "Uploaded file is not a readable spreadsheet") -> "Result[T]":
        """Payload could not be parsed as a spreadsheet (400)."""
        return cls.fail(error, HTTPStatus.BAD_REQUEST, ErrorType.DECODE)

    @classmethod
    def persistence_error(cls, error: str = "Storage operation failed") -> "Result[T]":
        """The storage collaborator rejected a read or write (500)."""
        return cls.fail(error, HTTPStatus.INTERNAL_SERVER_ERROR, ErrorType.PERSISTENCE)

    @classmethod
    def server_error(cls, error: str = "Internal server error") -> "Result[T]":
        """
        Create a failed Result with INTERNAL_SERVER_ERROR status code.

        Args:
            error (str, optional): The error message. Defaults to "Internal server error".

        Returns:
            Result[T]: A failed Result with 500 status code
        """
        return cls.fail(error, HTTPStatus.INTERNAL_SERVER_ERROR, ErrorType.SERVER)

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert Result to a dictionary suitable for API responses.

        Returns:
            Dict[str, Any]: Dictionary containing status, status_code, data or error/error_type
        """
        response = {
            "success": self.success,
            "status_code": self.status_code.value,
            "status": self.status_code.phrase
        }

        if self.is_success():
            response["data"] = self.data
        else:
            response["error_type"] = self.error_type
            response["error"] = self.error

        return response

    def __str__(self) -> str:
        status_info = f"{self.status_code.value} {self.status_code.phrase}"
        if self.is_success():
            data_repr = str(self.data)
            # Truncate long data representations
            if len(data_repr) > 100:
                data_repr = f"{data_repr[:97]}..."
            return f"Success ({status_info}): {data_repr}"
        return f"Failure ({status_info}) {self.error_type}: {self.error}"

    def __repr__(self) -> str:
        return (
            f"Result(success={self.success}, status_code={self.status_code!r}, "
            f"error_type={self.error_type!r}, data={self.data!r}, error={self.error!r})"
        )
