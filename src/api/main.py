from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List

from src.api.service import UploaderService
from src.api.schemas import (
    BreadcrumbResponse,
    CommitResponse,
    DirectoryEntryResponse,
    ListingResponse,
    LoginRequest,
    NavigateRequest,
    NavigateResponse,
    NotificationResponse,
    PreviewResponse,
    RepositoryResponse,
    SelectBranchRequest,
    SelectRepositoryRequest,
    UploadCheckItem,
    UploadCheckResponse,
    UploadStatusResponse,
    UserResponse,
)
from src.core.config import UploaderSettings
from src.core.errors import (
    ConcurrentUpdateError,
    ForbiddenError,
    NotFoundError,
    RemoteApiError,
    SessionRequiredError,
    TransportError,
    UnauthorizedError,
    UploaderError,
    ValidationError,
)
from src.core.models import DirectoryEntry, Repository, UploadCandidate
from src.core.paths import breadcrumbs
from src.upload.classifier import format_size

import logging

settings = UploaderSettings.from_env()

# Configure Logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Repo Uploader API")

# In production, set ALLOWED_ORIGINS to a comma-separated list of domains
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

service = UploaderService(settings)

# Most specific first; the handler picks the first match
_ERROR_STATUS = [
    (ValidationError, 400),
    (SessionRequiredError, 401),
    (TransportError, 504),
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConcurrentUpdateError, 409),
    (RemoteApiError, 502),
]

@app.exception_handler(UploaderError)
async def uploader_error_handler(request: Request, exc: UploaderError):
    status = next((code for kind, code in _ERROR_STATUS if isinstance(exc, kind)), 500)
    logger.info(f"{request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc), "kind": type(exc).__name__})

@app.on_event("startup")
async def startup_event():
    # Pick up the credential saved by a previous login
    user = await service.restore()
    if user:
        logger.info(f"Restored session for {user.login}")

@app.on_event("shutdown")
async def shutdown_event():
    await service.close()

def _repository(repo: Repository) -> RepositoryResponse:
    return RepositoryResponse(
        owner=repo.owner,
        name=repo.name,
        full_name=repo.full_name,
        default_branch=repo.default_branch,
        private=repo.private,
    )

def _listing() -> ListingResponse:
    browser = service.require_browser()
    repository = service.require_repository()
    return ListingResponse(
        repository=_repository(repository),
        branch=browser.branch,
        branches=browser.branches,
        path=browser.path,
        breadcrumbs=[BreadcrumbResponse(label=label, path=path) for label, path in breadcrumbs(browser.path)],
        entries=[
            DirectoryEntryResponse(name=e.name, path=e.path, type=e.type, size=e.size, sha=e.sha)
            for e in browser.contents
        ],
        error=browser.last_error,
    )

async def _candidates(files: List[UploadFile]) -> List[UploadCandidate]:
    candidates = []
    for f in files:
        data = await f.read()
        candidates.append(UploadCandidate.from_bytes(f.filename or "upload", data))
    return candidates

@app.get("/health")
def health_check():
    return {"status": "ok", "authenticated": service.session is not None}

@app.get("/api/session", response_model=UserResponse)
def get_session():
    if service.session is None or service.session.user is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    user = service.session.user
    return UserResponse(login=user.login, name=user.name)

@app.post("/api/session", response_model=UserResponse)
async def login(req: LoginRequest):
    """Log in with a personal access token and remember it."""
    if not req.token.strip():
        raise HTTPException(status_code=400, detail="Token is required")
    user = await service.login(req.token.strip())
    return UserResponse(login=user.login, name=user.name)

@app.delete("/api/session")
async def logout():
    await service.logout()
    return {"status": "logged out"}

@app.get("/api/repos", response_model=List[RepositoryResponse])
async def list_repositories(refresh: bool = False):
    browser = service.require_browser()
    if refresh or not browser.repositories:
        await browser.load_repositories()
    return [_repository(r) for r in browser.repositories]

@app.post("/api/repos/select", response_model=ListingResponse)
async def select_repository(req: SelectRepositoryRequest):
    await service.select_repository(req.owner, req.name)
    return _listing()

@app.post("/api/branch", response_model=ListingResponse)
async def select_branch(req: SelectBranchRequest):
    await service.require_browser().select_branch(req.branch)
    return _listing()

@app.get("/api/contents", response_model=ListingResponse)
async def get_contents(path: str = "", branch: str = ""):
    """List a directory of the selected repository (current branch by default)."""
    browser = service.require_browser()
    repository = service.require_repository()
    await browser.load_contents(repository, path, branch or browser.branch)
    return _listing()

@app.post("/api/navigate", response_model=NavigateResponse)
async def navigate(req: NavigateRequest):
    browser = service.require_browser()
    service.require_repository()
    entry = DirectoryEntry(
        name=req.name or req.path.rstrip("/").rpartition("/")[2],
        path=req.path,
        type=req.type,
        size=0,
        sha="",
    )
    preview = await browser.navigate(entry)
    if preview is None:
        return NavigateResponse(listing=_listing())
    return NavigateResponse(
        preview=PreviewResponse(name=preview.name, path=preview.path, kind=preview.kind, content=preview.content)
    )

@app.post("/api/upload/check", response_model=UploadCheckResponse)
async def check_upload(files: List[UploadFile] = File(...)):
    """Classify dropped files without committing anything."""
    candidates = await _candidates(files)
    results = service.check(candidates)
    items = [
        UploadCheckItem(name=c.name, size=c.size, display_size=format_size(c.size), errors=errors)
        for c, errors in zip(candidates, results)
    ]
    return UploadCheckResponse(ok=not any(i.errors for i in items), files=items)

@app.post("/api/upload", response_model=CommitResponse)
async def upload(message: str = Form(""), files: List[UploadFile] = File(...)):
    """Commit the uploaded files into the current directory of the selected branch."""
    candidates = await _candidates(files)
    result = await service.upload(candidates, message)
    return CommitResponse(
        commit_sha=result.commit_sha,
        tree_sha=result.tree_sha,
        parent_sha=result.parent_sha,
        branch=result.branch,
        path=result.path,
        files=result.paths,
    )

@app.get("/api/upload/status", response_model=UploadStatusResponse)
def upload_status():
    transition = service.status()
    return UploadStatusResponse(
        state=transition.state.value,
        progress=transition.progress,
        file_name=transition.file_name,
        error=str(transition.error) if transition.error else None,
    )

@app.get("/api/notifications", response_model=List[NotificationResponse])
def notifications():
    return [NotificationResponse(kind=n.kind, message=n.message) for n in service.drain_notifications()]
