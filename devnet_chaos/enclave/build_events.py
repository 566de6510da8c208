"""
Build Events - consumes the orchestration platform's network build stream
"""
import logging
from ..models import BuildEvent, BuildEventKind
from ..errors import NetworkBuildError
from ..interfaces import IBuildEventStream

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


def log_build_event(event: BuildEvent) -> None:
    message = f"[Kurtosis] {event.message}"
    if event.kind == BuildEventKind.ERROR:
        logger.error(message)
    elif event.kind == BuildEventKind.WARNING:
        logger.warning(message)
    elif event.kind == BuildEventKind.PROGRESS:
        logger.debug(message)
    else:
        logger.info(message)


def drain_build_events(stream: IBuildEventStream) -> None:
    """
    Consume a build stream until its terminal event.

    Every event is logged in arrival order. An ERROR event, an unsuccessful
    COMPLETED event, or a stream that ends without a COMPLETED event raises
    NetworkBuildError. The stream is closed in every case.
    """
    try:
        for event in stream:
            log_build_event(event)

            if event.kind == BuildEventKind.ERROR:
                raise NetworkBuildError(f"Network build failed: {event.message}")

            if event.kind == BuildEventKind.COMPLETED:
                if not event.successful:
                    raise NetworkBuildError(f"Network build completed unsuccessfully: {event.message or 'no details'}")
                logger.info("Network build completed successfully")
                return

        raise NetworkBuildError("Network build stream ended before a completion event")
    finally:
        stream.close()
