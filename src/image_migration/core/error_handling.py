# src/image_migration/core/error_handling.py

import functools
import logging
import time

from botocore.exceptions import (
    BotoCoreError,
    ClientError as BotocoreClientError,
    NoCredentialsError,
    PartialCredentialsError,
)
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from .exceptions import (
    ImageMigrationError,
    UploadAuthenticationError,
    UploadError,
    UploadExhaustedError,
)

AUTH_ERROR_CODES = (
    "AccessDenied",
    "AllAccessDisabled",
    "AuthorizationHeaderMalformed",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
    "Unauthorized",
)
AUTH_ERROR_MARKERS = ("authentication", "unauthorized")


def _name_of(func) -> str:
    return getattr(func, '__name__', type(func).__name__)


def _logger_for(func) -> logging.Logger:
    module = getattr(func, '__module__', None) or __name__
    return logging.getLogger(module + '.' + _name_of(func))


def is_authentication_error(error: Exception) -> bool:
    """Whether an upload failure is a credentials/permissions problem."""
    if isinstance(error, UploadAuthenticationError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


def with_error_handling(func):
    """
    A decorator that maps storage and imaging failures into pipeline errors.

    botocore client errors become UploadError, or UploadAuthenticationError
    for credential/permission codes. Connection problems and timeouts become
    a (retryable) UploadError, unreadable images too. Pipeline errors pass
    through untouched.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = _logger_for(func)
        try:
            return func(*args, **kwargs)
        except ImageMigrationError:
            raise
        except BotocoreClientError as e:
            error = e.response.get('Error', {})
            code = error.get('Code', 'Unknown')
            message = error.get('Message', str(e))
            logger.warning(f"Storage call failed in '{_name_of(func)}': {code}: {message}")
            if code in AUTH_ERROR_CODES:
                raise UploadAuthenticationError(
                    f"Storage authentication failed ({code}): {message}"
                ) from e
            raise UploadError(f"Storage request failed ({code}): {message}") from e
        except (NoCredentialsError, PartialCredentialsError) as e:
            logger.warning(f"Missing storage credentials in '{_name_of(func)}': {e}")
            raise UploadAuthenticationError(f"Storage authentication failed: {e}") from e
        except BotoCoreError as e:
            logger.warning(f"Network error in '{_name_of(func)}': {e}")
            raise UploadError(f"Network error talking to storage: {e}") from e
        except PILUnidentifiedImageError as e:
            logger.warning(f"Unreadable image in '{_name_of(func)}': {e}")
            raise UploadError(f"Malformed image file: {e}") from e
        except Exception as e:
            logger.error(
                f"Error in '{_name_of(func)}': {e}",
                exc_info=True
            )
            raise
    return wrapper


def retry_upload_operation(max_attempts=3, base_delay=1.0, sleep=time.sleep):
    """
    Decorator to retry uploads with a growing pause between attempts.

    The pause before attempt ``n + 1`` is ``base_delay * n``. Authentication
    failures propagate on the first attempt. Anything that is not an
    UploadError propagates unchanged. Once the attempts are used up the last
    error is wrapped in UploadExhaustedError.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = _logger_for(func)
            last_error = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except UploadError as e:
                    if is_authentication_error(e):
                        logger.error(f"Upload '{_name_of(func)}' failed authentication, not retrying: {e}")
                        raise
                    last_error = e
                    if attempt >= max_attempts:
                        logger.error(
                            f"Upload '{_name_of(func)}' failed after {max_attempts} attempts. Error: {e}"
                        )
                        break
                    delay = base_delay * attempt
                    logger.info(
                        f"Upload '{_name_of(func)}' failed. Attempt {attempt}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )
                    sleep(delay)
            raise UploadExhaustedError(last_error, max_attempts) from last_error
        return wrapper
    return decorator


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{error_detail['item']}': {error_detail['error']}"
                )
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item from inside the 'with' block.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): The id of the image that failed.
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
