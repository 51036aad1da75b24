"""FastAPI web application for lockbump."""

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from lockbump.errors import (
    LockbumpError,
    NoOpUpdate,
    RequirementNotFound,
    ResolverNonZeroExit,
    ResolverTimeout,
)
from lockbump.lockfile import merge
from lockbump.models import Dependency, ManagedFile, Requirement
from lockbump.sanitize import SetupFileSanitizer
from lockbump.settings import Settings
from lockbump.updater import update_files

app = FastAPI(
    title="lockbump",
    description="Update pip-compile manifests and lock files for one dependency",
    version="0.1.0",
)


class FileModel(BaseModel):
    """A dependency file as sent or returned over the API."""
    name: str
    content: str
    directory: str = "/"


class RequirementModel(BaseModel):
    """A requirement record for one file."""
    file: str
    requirement: Optional[str] = None
    groups: list[str] = Field(default_factory=list)
    source: Optional[dict] = None


class DependencyModel(BaseModel):
    """A dependency change to realise."""
    name: str
    version: str
    previous_version: Optional[str] = None
    requirements: list[RequirementModel] = Field(default_factory=list)
    previous_requirements: list[RequirementModel] = Field(default_factory=list)


class UpdateRequest(BaseModel):
    """Request model for updating dependency files."""
    dependency_files: list[FileModel]
    dependencies: list[DependencyModel]
    credentials: list[dict] = Field(default_factory=list)


class UpdateResponse(BaseModel):
    """Response model for dependency updates."""
    updated_files: list[FileModel]


class SanitizeRequest(BaseModel):
    content: str
    replacement_version: str = "0.0.1"


class SanitizeResponse(BaseModel):
    content: str
    degraded: bool
    diagnostic: Optional[str] = None


class MergeRequest(BaseModel):
    original: str
    fresh: str


class MergeResponse(BaseModel):
    content: str


ERROR_STATUS = [
    (NoOpUpdate, 422),
    (RequirementNotFound, 409),
    (ResolverTimeout, 504),
    (ResolverNonZeroExit, 502),
]


def _status_for(error: LockbumpError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def _to_requirements(models: list[RequirementModel]) -> tuple[Requirement, ...]:
    return tuple(
        Requirement(
            file=m.file,
            requirement=m.requirement,
            groups=tuple(m.groups),
            source=m.source,
        )
        for m in models
    )


def _to_dependency(model: DependencyModel) -> Dependency:
    return Dependency(
        name=model.name,
        version=model.version,
        previous_version=model.previous_version,
        requirements=_to_requirements(model.requirements),
        previous_requirements=_to_requirements(model.previous_requirements),
    )


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


@app.post("/api/update", response_model=UpdateResponse)
def update_dependency_files(request: UpdateRequest):
    """Return the files that change when the requested dependencies are updated."""
    if not request.dependency_files:
        raise HTTPException(status_code=400, detail="No dependency files provided")
    if not request.dependencies:
        raise HTTPException(status_code=400, detail="No dependencies provided")

    files = [ManagedFile(name=f.name, content=f.content, directory=f.directory) for f in request.dependency_files]
    dependencies = [_to_dependency(d) for d in request.dependencies]

    try:
        updated = update_files(
            files,
            dependencies,
            credentials=request.credentials,
            settings=Settings.from_env(),
        )
    except LockbumpError as e:
        raise HTTPException(status_code=_status_for(e), detail=e.to_dict())

    return UpdateResponse(
        updated_files=[
            FileModel(name=f.name, content=f.content, directory=f.directory)
            for f in updated
        ]
    )


@app.post("/api/sanitize", response_model=SanitizeResponse)
async def sanitize_setup_file(request: SanitizeRequest):
    """Sanitize setup.py source for inspection."""
    result = SetupFileSanitizer(request.replacement_version).rewrite(request.content)
    return SanitizeResponse(
        content=result.text,
        degraded=result.degraded,
        diagnostic=result.diagnostic,
    )


@app.post("/api/merge", response_model=MergeResponse)
async def merge_lockfile(request: MergeRequest):
    """Merge fresh pip-compile output into an original lock file's format."""
    if not request.original.strip():
        raise HTTPException(status_code=400, detail="No original lock file provided")
    return MergeResponse(
        content=merge(request.original, request.fresh, Settings.from_env().comment_column)
    )
