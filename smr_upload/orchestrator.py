"""
Module for driving a mod version through create, upload, finalize and review polling.
"""
import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

import requests
from tenacity import (
    RetryError,
    Retrying,
    before_log,
    retry_if_result,
    stop_when_event_set,
    wait_fixed
)

from .api import SMRApiClient
from .config import PublisherConfig
from .envelope import build_envelope
from .errors import PollError, TransportError, UploadCancelledError
from .models import (
    ChunkDescriptor,
    Stability,
    UploadOutcome,
    UploadPhase,
    UploadReport,
    UploadSession,
    UploadTarget,
    VersionReviewState
)
from .planner import plan_chunks, read_chunk
from .transport import HttpTransport

logger = logging.getLogger(__name__)


def version_not_ready(state: VersionReviewState) -> bool:
    """Retry predicate for the review poll."""
    return not state.has_version


class UploadOrchestrator:
    """Runs one upload session from INIT to DONE.

    The session is single threaded unless ``config.max_workers`` is above
    one, in which case chunks are sent through a bounded thread pool and
    all of them are awaited before the version is finalized.
    """

    def __init__(self, config: PublisherConfig,
                 api_client: Optional[SMRApiClient] = None,
                 transport: Optional[HttpTransport] = None,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        """Initialize the orchestrator.

        Args:
            config: Publisher configuration, validated when a session starts
            api_client: GraphQL client for create/finalize/state calls
            transport: Transport used for chunk uploads
            cancel_event: Event that aborts the session when set
            sleep: Sleep function used while polling. Defaults to waiting
                on the cancel event.
        """
        self.config = config
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep or self.cancel_event.wait
        self._owns_session = api_client is None or transport is None

        # Collaborators created here share one session
        session = requests.Session() if self._owns_session else None
        self.api_client = api_client or SMRApiClient(
            config.endpoint_url,
            config.api_key,
            session=session,
            timeout=config.request_timeout
        )
        self.transport = transport or HttpTransport(
            session=session,
            timeout=config.request_timeout
        )
        self._session = session

    def _check_cancelled(self, stage: str) -> None:
        if self.cancel_event.is_set():
            raise UploadCancelledError(f"upload cancelled before {stage}")

    def _pause(self, seconds: float) -> None:
        self._sleep(seconds)
        self._check_cancelled("the next state check")

    def publish(self, target: UploadTarget) -> UploadReport:
        """Publish a new version of ``target.mod_id`` from ``target.file_path``.

        Args:
            target: Artifact, changelog and stability to publish

        Returns:
            UploadReport describing the review outcome

        Raises:
            ConfigurationError: If chunk size or stability are invalid
            RemoteError: If creating or finalizing the version fails
            TransportError: If any chunk upload fails
            FileSystemError: If a chunk cannot be read
            UploadCancelledError: If the cancel event is set mid-session
        """
        session = UploadSession(mod_id=target.mod_id)

        # INIT
        self.config = self.config.validate()
        if not isinstance(target.stability, Stability):
            target = replace(target, stability=Stability.parse(target.stability))
        session.chunk_plan = plan_chunks(target.total_size, self.config.chunk_size)

        if self.config.dry_run:
            return self._dry_run(session, target)

        self._check_cancelled("creating the version")
        self._create_version(session, target)

        self._upload_chunks(session, target)

        finalize_ok = self._finalize(session, target)

        outcome, error = self._poll(session)
        session.advance(UploadPhase.DONE)

        report = UploadReport(
            mod_id=session.mod_id,
            version_id=session.version_id,
            outcome=outcome,
            chunks_uploaded=session.current_chunk_index,
            bytes_uploaded=session.bytes_uploaded,
            finalize_succeeded=finalize_ok,
            error=error
        )
        logger.info(
            f"Finished upload of mod {report.mod_id} version {report.version_id}: "
            f"{report.chunks_uploaded} chunks, {report.bytes_uploaded} bytes, "
            f"outcome {report.outcome.name}"
        )
        return report

    def _dry_run(self, session: UploadSession, target: UploadTarget) -> UploadReport:
        logger.info(
            f"Dry run: would upload {target.file_path} ({target.total_size} bytes) "
            f"to mod {target.mod_id} in {len(session.chunk_plan)} chunks"
        )
        for chunk in session.chunk_plan:
            logger.info(
                f"Dry run: part {chunk.part_number} offset {chunk.byte_offset} "
                f"length {chunk.byte_length}"
            )
        session.advance(UploadPhase.DONE)
        return UploadReport(
            mod_id=session.mod_id,
            version_id=None,
            outcome=UploadOutcome.UNKNOWN,
            chunks_uploaded=0,
            bytes_uploaded=0
        )

    def _create_version(self, session: UploadSession, target: UploadTarget) -> None:
        session.advance(UploadPhase.CREATING)
        logger.info(f"Creating a new version of mod {target.mod_id} from {target.file_path}")

        session.version_id = self.api_client.create_version(target.mod_id)
        logger.info(f"Received version id {session.version_id} for mod {target.mod_id}")

    def _send_chunk(self, session: UploadSession, target: UploadTarget,
                    chunk: ChunkDescriptor) -> None:
        """Read, encode and send a single chunk."""
        logger.info(
            f"Uploading chunk {chunk.part_number}/{len(session.chunk_plan)} "
            f"of version {session.version_id}"
        )
        data = read_chunk(target.file_path, chunk)
        body, content_type = build_envelope(
            session.mod_id,
            session.version_id,
            chunk.part_number,
            data,
            target.file_name
        )
        self.transport.send(self.config.endpoint_url, body, content_type, self.config.api_key)

    def _upload_chunks(self, session: UploadSession, target: UploadTarget) -> None:
        session.advance(UploadPhase.UPLOADING)

        if self.config.max_workers > 1 and len(session.chunk_plan) > 1:
            self._upload_chunks_parallel(session, target)
            return

        for chunk in session.chunk_plan[session.current_chunk_index:]:
            self._check_cancelled(f"chunk {chunk.part_number}")
            try:
                self._send_chunk(session, target, chunk)
            except TransportError:
                logger.error(
                    f"Chunk {chunk.part_number} of version {session.version_id} failed, "
                    f"aborting after {session.current_chunk_index} chunks"
                )
                raise
            session.current_chunk_index += 1

    def _upload_chunks_parallel(self, session: UploadSession, target: UploadTarget) -> None:
        """Send chunks through a bounded pool and wait for all of them.

        The first failure cancels every chunk that has not started yet.
        """
        abort = threading.Event()

        def send(chunk: ChunkDescriptor) -> None:
            if abort.is_set():
                raise UploadCancelledError(f"chunk {chunk.part_number} skipped after failure")
            self._check_cancelled(f"chunk {chunk.part_number}")
            self._send_chunk(session, target, chunk)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            future_to_chunk: Dict[Future, ChunkDescriptor] = {
                executor.submit(send, chunk): chunk
                for chunk in session.chunk_plan
            }
            done, not_done = wait(future_to_chunk, return_when=FIRST_EXCEPTION)

            failed: List[Tuple[ChunkDescriptor, BaseException]] = [
                (future_to_chunk[f], f.exception()) for f in done if f.exception()
            ]
            if failed:
                abort.set()
                for future in not_done:
                    future.cancel()

        completed = {future_to_chunk[f].index for f in future_to_chunk
                     if f.done() and not f.cancelled() and not f.exception()}
        while session.current_chunk_index in completed:
            session.current_chunk_index += 1

        if failed:
            chunk, error = min(failed, key=lambda item: item[0].index)
            logger.error(
                f"Chunk {chunk.part_number} of version {session.version_id} failed, "
                f"{len(completed)} of {len(session.chunk_plan)} chunks were sent"
            )
            raise error

    def _finalize(self, session: UploadSession, target: UploadTarget) -> bool:
        self._check_cancelled("finalizing the version")
        session.advance(UploadPhase.FINALIZING)
        logger.info(f"Finalizing uploaded version {session.version_id}")

        success = self.api_client.finalize_version(
            session.mod_id,
            session.version_id,
            target.changelog,
            target.stability
        )
        if not success:
            logger.warning(f"Failed to finalize version upload {session.version_id}")
        return success

    def _check_state(self, session: UploadSession) -> VersionReviewState:
        logger.info(f"Checking version upload state of {session.version_id}")
        return self.api_client.check_version_upload_state(session.mod_id, session.version_id)

    def _poll(self, session: UploadSession) -> Tuple[UploadOutcome, Optional[str]]:
        """Wait until the server reports the version and return its outcome."""
        session.advance(UploadPhase.POLLING)
        self._pause(self.config.poll_initial_delay)

        retryer = Retrying(
            retry=retry_if_result(version_not_ready),
            wait=wait_fixed(self.config.poll_interval),
            stop=stop_when_event_set(self.cancel_event),
            sleep=self._pause,
            before=before_log(logger, logging.DEBUG)
        )

        try:
            state = retryer(self._check_state, session)
        except PollError as e:
            logger.error(f"Failed to check upload state of version {session.version_id}: {e}")
            return UploadOutcome.UNKNOWN, str(e)
        except RetryError as e:
            raise UploadCancelledError(
                f"stopped polling version {session.version_id} after cancellation"
            ) from e

        if state.auto_approved:
            logger.info(f"Version {session.version_id} successfully uploaded and auto-approved")
            return UploadOutcome.AUTO_APPROVED, None

        logger.info(
            f"Version {session.version_id} successfully uploaded, but has to be scanned "
            "for viruses, which may take up to 15 minutes"
        )
        return UploadOutcome.MANUAL_REVIEW, None

    def close(self) -> None:
        """Close HTTP sessions created by the orchestrator."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "UploadOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
