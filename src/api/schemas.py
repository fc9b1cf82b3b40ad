from typing import List, Optional
from pydantic import BaseModel

class LoginRequest(BaseModel):
    token: str

class UserResponse(BaseModel):
    login: str
    name: Optional[str] = None

class RepositoryResponse(BaseModel):
    owner: str
    name: str
    full_name: str
    default_branch: str
    private: bool = False

class SelectRepositoryRequest(BaseModel):
    owner: str
    name: str

class SelectBranchRequest(BaseModel):
    branch: str

class DirectoryEntryResponse(BaseModel):
    name: str
    path: str
    type: str # 'file' or 'dir'
    size: int
    sha: str

class BreadcrumbResponse(BaseModel):
    label: str
    path: str

class ListingResponse(BaseModel):
    repository: RepositoryResponse
    branch: Optional[str] = None
    branches: List[str]
    path: str
    breadcrumbs: List[BreadcrumbResponse]
    entries: List[DirectoryEntryResponse]
    error: Optional[str] = None

class NavigateRequest(BaseModel):
    path: str
    type: str = "file"
    name: Optional[str] = None

class PreviewResponse(BaseModel):
    name: str
    path: str
    kind: str # 'text' or 'image'
    content: str

class NavigateResponse(BaseModel):
    listing: Optional[ListingResponse] = None
    preview: Optional[PreviewResponse] = None

class UploadCheckItem(BaseModel):
    name: str
    size: int
    display_size: str
    errors: List[str]

class UploadCheckResponse(BaseModel):
    ok: bool
    files: List[UploadCheckItem]

class CommitResponse(BaseModel):
    commit_sha: str
    tree_sha: str
    parent_sha: str
    branch: str
    path: str
    files: List[str]

class UploadStatusResponse(BaseModel):
    state: str
    progress: float
    file_name: Optional[str] = None
    error: Optional[str] = None

class NotificationResponse(BaseModel):
    kind: str # 'success', 'error' or 'info'
    message: str
