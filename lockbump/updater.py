"""Update orchestration: patch manifests, regenerate lock files, verify change."""

import re
from dataclasses import fields

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from .classify import FileRoles, classify_files
from .errors import NoOpUpdate
from .lockfile import compile_options, merge, parse_lockfile
from .logging import logger
from .models import Credential, Dependency, ManagedFile
from .requirement_patcher import patch
from .resolver import PipCompileInvoker
from .sanitize import SetupFacts, SetupFileSanitizer, extract_setup_facts
from .settings import Settings
from .workspace import Workspace, WorkspaceManager

_CREDENTIAL_FIELDS = {f.name for f in fields(Credential)}

# "-e .", "-e file:." and "--editable=./"
INSTALLS_PROJECT = re.compile(
    r"^\s*(?:-e|--editable)[=\s]+(?:file:)?\./?\s*(?:#.*)?$", re.MULTILINE
)


def _coerce_credentials(credentials) -> list[Credential]:
    coerced = []
    for credential in credentials or []:
        if isinstance(credential, Credential):
            coerced.append(credential)
        else:
            coerced.append(
                Credential(**{k: v for k, v in credential.items() if k in _CREDENTIAL_FIELDS})
            )
    return coerced


def _declares(requirements: list[str], name: str) -> bool:
    wanted = canonicalize_name(name)
    for text in requirements:
        try:
            if canonicalize_name(Requirement(text).name) == wanted:
                return True
        except InvalidRequirement:
            continue
    return False


class PipCompileFileUpdater:
    """Realises dependency changes across pip-compile manifests and lock files."""

    def __init__(
        self,
        dependency_files: list[ManagedFile],
        dependencies: list[Dependency],
        credentials: list | None = None,
        settings: Settings | None = None,
        invoker: PipCompileInvoker | None = None,
        workspace_manager: WorkspaceManager | None = None,
    ):
        """Initialize the updater.

        Args:
            dependency_files: Every file of the project relevant to pip
            dependencies: Changes to realise, applied in order
            credentials: Passed to the resolver environment only
            settings: Runtime configuration, read from the environment if omitted
            invoker: Resolver invoker, built from settings if omitted
            workspace_manager: Workspace manager, built from settings if omitted
        """
        self.dependency_files = list(dependency_files)
        self.dependencies = list(dependencies)
        self.settings = settings or Settings.from_env()
        self.credentials = _coerce_credentials(credentials)
        self.invoker = invoker or PipCompileInvoker(
            command=self.settings.resolver_command,
            timeout=self.settings.resolver_timeout,
            credentials=self.credentials,
        )
        self.workspace_manager = workspace_manager or WorkspaceManager(
            self.settings.workspace_root
        )
        self.sanitizer = SetupFileSanitizer(self.settings.sanitized_version)

    def updated_dependency_files(self) -> list[ManagedFile]:
        """Return only the files whose content changed.

        Patched manifests come first, then regenerated lock files, then plain
        requirement files.

        Raises:
            NoOpUpdate: If no file would change
        """
        originals = {f.name: f for f in self.dependency_files}
        current = dict(originals)
        order: dict[str, int] = {}

        for dependency in self.dependencies:
            for rank, files in enumerate(self._update_for(dependency, list(current.values()))):
                for file in files:
                    current[file.name] = file
                    order.setdefault(file.name, rank)

        changed = [
            current[name]
            for name in sorted(order, key=lambda n: order[n])
            if current[name].content != originals[name].content
        ]
        if not changed:
            names = ", ".join(d.name for d in self.dependencies)
            raise NoOpUpdate(
                f"Update of {names} changed no files",
                hint="The requested version may already be in place",
                context={
                    "dependency": names,
                    "files": ", ".join(originals),
                },
            )
        return changed

    def _update_for(
        self, dependency: Dependency, files: list[ManagedFile]
    ) -> tuple[list[ManagedFile], list[ManagedFile], list[ManagedFile]]:
        log = logger.bind(dependency=dependency.name)
        roles = classify_files(files, dependency)
        log.debug(
            f"Classified {len(roles.manifests)} manifest(s), {len(roles.compiled)} compiled, "
            f"{len(roles.supporting)} supporting, {len(roles.plain)} plain"
        )

        manifests = [self._patch_requirement(f, dependency) for f in roles.manifests]
        supporting = []
        setup_declares = False
        for file in roles.supporting:
            sanitized, facts = self._sanitize(file)
            supporting.append(sanitized)
            if _declares(facts.all_requirements, dependency.name):
                log.info(f"{file.name} declares {dependency.name}")
                setup_declares = True

        targets = [
            f
            for f in roles.compiled
            if self._needs_regeneration(f, roles, dependency, setup_declares)
        ]
        compiled = []
        if targets:
            compiled = self._regenerate(targets, roles, manifests, supporting, dependency)
        else:
            log.info("No compiled files reference this dependency")

        plain = [self._patch_requirement(f, dependency) for f in roles.plain]
        return manifests, compiled, plain

    def _patch_requirement(self, file: ManagedFile, dependency: Dependency) -> ManagedFile:
        new = dependency.requirement_for(file.name)
        old = dependency.previous_requirement_for(file.name)
        if new is None or old is None or new.requirement == old.requirement:
            return file
        if not old.requirement or not new.requirement:
            logger.warning(
                f"Cannot rewrite {file.name}: requirement for {dependency.name} "
                f"goes from {old.requirement!r} to {new.requirement!r}"
            )
            return file
        content = patch(
            file.content, dependency.name, old.requirement, new.requirement, file.name
        )
        logger.info(f"Patched {file.name}: {dependency.name}{old.requirement} -> {new.requirement}")
        return file.with_content(content)

    def _sanitize(self, file: ManagedFile) -> tuple[ManagedFile, SetupFacts]:
        result = self.sanitizer.rewrite(file.content)
        if result.degraded:
            logger.warning(f"{file.name} sanitized partially: {result.diagnostic}")
        return file.with_content(result.text), extract_setup_facts(result.text)

    def _needs_regeneration(
        self,
        compiled: ManagedFile,
        roles: FileRoles,
        dependency: Dependency,
        setup_declares: bool = False,
    ) -> bool:
        if parse_lockfile(compiled.content).entry_for(dependency.name) is not None:
            return True
        sources = roles.sources_for(compiled)
        # The project itself is installed and its setup.py pulls the dependency in
        if setup_declares and any(INSTALLS_PROJECT.search(s.content) for s in sources):
            return True
        # A newly declared dependency is not in the lock file yet
        return any(
            (r := dependency.requirement_for(source.name)) is not None
            and r.requirement is not None
            for source in sources
        )

    def _seed(self, workspace: Workspace, files: list[ManagedFile]) -> None:
        for file in files:
            workspace.write(file)

    def _regenerate(
        self,
        targets: list[ManagedFile],
        roles: FileRoles,
        manifests: list[ManagedFile],
        supporting: list[ManagedFile],
        dependency: Dependency,
    ) -> list[ManagedFile]:
        regenerated = []
        with self.workspace_manager.session() as workspace:
            self._seed(
                workspace,
                [*manifests, *supporting, *roles.compiled, *roles.plain, *roles.other],
            )
            patched = {m.name: m for m in manifests}
            for compiled in targets:
                sources = [patched.get(m.name, m) for m in roles.sources_for(compiled)]
                if not sources:
                    logger.warning(f"No manifest found for {compiled.name}, skipping")
                    continue

                result = self.invoker.compile(
                    workspace,
                    [workspace.relative(s.path) for s in sources],
                    workspace.relative(compiled.path),
                    dependency.name,
                    dependency.version,
                    compile_options(parse_lockfile(compiled.content)),
                )
                content = merge(compiled.content, result.lock_text, self.settings.comment_column)
                if content == compiled.content:
                    logger.warning(f"{compiled.name} is unchanged after recompiling")
                regenerated.append(compiled.with_content(content))
        return regenerated


def update_files(
    dependency_files: list[ManagedFile],
    dependencies: list[Dependency],
    credentials: list | None = None,
    settings: Settings | None = None,
) -> list[ManagedFile]:
    """Produce the changed files for a dependency update.

    Args:
        dependency_files: Manifests, lock files and supporting scripts
        dependencies: Dependency changes to realise
        credentials: Opaque credential records for the resolver
        settings: Runtime configuration

    Returns:
        Changed files only: manifests, then lock files, then plain pin files
    """
    updater = PipCompileFileUpdater(
        dependency_files=dependency_files,
        dependencies=dependencies,
        credentials=credentials,
        settings=settings,
    )
    return updater.updated_dependency_files()
