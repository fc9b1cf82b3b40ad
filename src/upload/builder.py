import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from src.core.errors import ConcurrentUpdateError, RemoteApiError, ValidationError, remote_error
from src.core.models import BlobRequest, CommitAttempt, CommitResult, Repository, UploadCandidate
from src.core.paths import join, normalize
from src.remote.host import RemoteHost
from src.upload.classifier import FileClassifier
from src.upload.encoder import ContentEncoder
from src.upload.state import CommitState, CommitTransition, UploadProgress

logger = logging.getLogger(__name__)

Listener = Callable[[CommitTransition], None]


@dataclass(frozen=True)
class _Job:
    files: List[UploadCandidate]
    owner: str
    repo: str
    branch: str
    path: str


Step = Callable[[CommitAttempt, _Job], Awaitable[None]]


class CommitBuilder:
    """Turns a batch of files into one commit on a remote branch.

    The attempt walks blob -> tree -> commit -> ref. The ref is moved last,
    so a failure anywhere leaves the branch untouched (objects created up to
    that point stay behind unreferenced on the host). State changes and
    progress are published to subscribers as CommitTransition values.

    The final ref update is forced: a commit pushed by someone else between
    reading the tip and moving it is overwritten. Set `verify_branch_tip`
    to re-read the tip first and fail with ConcurrentUpdateError if it moved.
    """

    def __init__(
        self,
        host: RemoteHost,
        classifier: Optional[FileClassifier] = None,
        encoder: Optional[ContentEncoder] = None,
        verify_branch_tip: bool = False,
    ):
        self.host = host
        self.classifier = classifier or FileClassifier()
        self.encoder = encoder or ContentEncoder()
        self.verify_branch_tip = verify_branch_tip
        self.state = CommitState.IDLE
        self.progress = UploadProgress()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for transitions; returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, state: CommitState, file_name: Optional[str] = None, error: Optional[Exception] = None):
        self.state = state
        transition = CommitTransition(state=state, progress=self.progress.value, file_name=file_name, error=error)
        for listener in list(self._listeners):
            listener(transition)

    async def commit(
        self,
        files: Iterable[UploadCandidate],
        message: str,
        repository: Repository,
        branch: str,
        path: str = "",
    ) -> CommitResult:
        if self.state.in_flight:
            raise ValidationError("An upload is already in progress")

        job = _Job(list(files), repository.owner, repository.name, branch, normalize(path))
        attempt = CommitAttempt(message=message)
        self.progress.reset()
        self._emit(CommitState.IDLE)

        try:
            self._preflight(job, message)
            logger.info(f"Committing {len(job.files)} file(s) to {repository.full_name}@{branch}:/{job.path}")
            for state, step in self._pipeline():
                self._emit(state)
                await step(attempt, job)
        except Exception as e:
            self.progress.reset()
            self._emit(CommitState.FAILED, error=e)
            logger.error(f"Upload to {repository.full_name}@{branch} failed: {e}")
            raise

        self.progress.reset()
        self._emit(CommitState.SUCCEEDED)
        logger.info(f"Branch {branch} of {repository.full_name} now at {attempt.commit}")
        return CommitResult(
            commit_sha=attempt.commit,
            tree_sha=attempt.tree,
            parent_sha=attempt.base_commit,
            branch=branch,
            path=job.path,
            blobs=attempt.blobs,
        )

    def _preflight(self, job: _Job, message: str):
        if not message or not message.strip():
            raise ValidationError("Please enter a commit message")
        if not job.files:
            raise ValidationError("No files selected for upload")
        # The whole batch is checked before any request: one bad file fails it all
        self.classifier.check(job.files)

    def _pipeline(self) -> List[Tuple[CommitState, Step]]:
        return [
            (CommitState.FETCHING_REF, self._fetch_ref),
            (CommitState.FETCHING_BASE_TREE, self._fetch_base_tree),
            (CommitState.ENCODING_BLOBS, self._upload_blobs),
            (CommitState.CREATING_TREE, self._create_tree),
            (CommitState.CREATING_COMMIT, self._create_commit),
            (CommitState.UPDATING_REF, self._update_ref),
        ]

    async def _fetch_ref(self, attempt: CommitAttempt, job: _Job):
        attempt.base_commit = await self.host.resolve_branch_tip(job.owner, job.repo, job.branch)

    async def _fetch_base_tree(self, attempt: CommitAttempt, job: _Job):
        attempt.base_tree = await self.host.get_commit_tree(job.owner, job.repo, attempt.base_commit)

    async def _upload_blobs(self, attempt: CommitAttempt, job: _Job):
        total = len(job.files)
        for i, candidate in enumerate(job.files):
            self.progress.advance((i + 0.5) / total * 100)
            self._emit(CommitState.ENCODING_BLOBS, file_name=candidate.name)

            blob = BlobRequest(path=join(job.path, candidate.name), content="")
            try:
                blob.content = await self.encoder.encode(candidate)
                blob.sha = await self.host.create_blob(job.owner, job.repo, blob.content)
            except RemoteApiError as e:
                raise remote_error(e.status, f'Failed to process file "{candidate.name}": {e}') from e
            attempt.blobs.append(blob)

            self.progress.advance((i + 1) / total * 100)
            self._emit(CommitState.ENCODING_BLOBS, file_name=candidate.name)

    async def _create_tree(self, attempt: CommitAttempt, job: _Job):
        entries = [blob.tree_entry() for blob in attempt.blobs]
        attempt.tree = await self.host.create_tree(job.owner, job.repo, attempt.base_tree, entries)

    async def _create_commit(self, attempt: CommitAttempt, job: _Job):
        attempt.commit = await self.host.create_commit(
            job.owner, job.repo, attempt.message, attempt.tree, [attempt.base_commit]
        )

    async def _update_ref(self, attempt: CommitAttempt, job: _Job):
        if self.verify_branch_tip:
            current = await self.host.resolve_branch_tip(job.owner, job.repo, job.branch)
            if current != attempt.base_commit:
                raise ConcurrentUpdateError(
                    f"Branch {job.branch} moved from {attempt.base_commit[:7]} to {current[:7]} during the upload"
                )
        await self.host.update_ref(job.owner, job.repo, job.branch, attempt.commit, force=True)
