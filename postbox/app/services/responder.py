from fastapi.responses import Response
from postbox.config import Context
from postbox.errors import PostboxError, StorageError, StorageConflictError
from postbox.logger_config import setup_logger
from postbox.monitor import FailureMonitor
from postbox.app.services.classifier import Outcome, Store, PageNotFound, MethodNotAllowed
from postbox.app.services.scramble import derive_scramble
from postbox.app.services.storage_manager import StorageManager

logger = setup_logger()


def status_response(status_code: int, reason: str, headers=None) -> Response:
    """Plain response whose body is the status line, e.g. ``404 Not Found\\n``."""
    return Response(
        content=f"{status_code} {reason}\n".encode("ascii"),
        status_code=status_code,
        headers=headers,
    )


def error_response(error: PostboxError, headers=None) -> Response:
    return status_response(error.status_code, error.reason, headers)


class Responder:
    def __init__(self, context: Context, storage_manager: StorageManager, monitor: FailureMonitor):
        self.key = context.key
        self.storage_manager = storage_manager
        self.monitor = monitor

    async def produce(self, outcome: Outcome, body: bytes = b"") -> Response:
        """Carry out a classified request and build its complete response.

        ``body`` is only looked at for Store outcomes, and only once it has
        been fully buffered.
        """
        if isinstance(outcome, Store):
            return await self._store(outcome.name, body)
        if isinstance(outcome, MethodNotAllowed):
            return status_response(405, "Method Not Allowed", {"Allow": outcome.allow.decode("ascii")})
        if isinstance(outcome, PageNotFound):
            return status_response(404, "Not Found")
        raise TypeError(f"Unknown outcome: {outcome!r}")

    async def _store(self, name: str, body: bytes) -> Response:
        scramble = derive_scramble(self.key, name)
        try:
            url = await self.storage_manager.store(scramble, name, body)
        except StorageConflictError as e:
            # conflicts come from clients re-posting a name, not from the disk
            logger.warning(f"Conflict storing {name!r}: {e}")
            return error_response(e)
        except StorageError as e:
            logger.error(f"Error storing {name!r}: {e}", exc_info=True)
            self.monitor.record_failure()
            return error_response(e)
        except PostboxError as e:
            logger.warning(f"Rejected {name!r}: {e}")
            return error_response(e)

        self.monitor.record_success()
        logger.info(f"Stored {len(body)} bytes at {url}")

        data = url.encode("utf-8")
        response = Response(content=data, status_code=200)
        response.raw_headers.append((b"location", data))
        return response
