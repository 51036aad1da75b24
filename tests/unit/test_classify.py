"""Tests for dependency file classification."""

from lockbump.classify import classify_files
from lockbump.models import Dependency, ManagedFile, Requirement


class TestClassifyFiles:
    """Test role assignment for dependency files."""

    def setup_method(self):
        self.dependency = Dependency(
            name="attrs",
            version="18.1.0",
            requirements=(Requirement(file="requirements.txt", requirement="==18.1.0"),),
            previous_requirements=(Requirement(file="requirements.txt", requirement="==17.3.0"),),
        )

    def test_same_stem_pairs(self, manifest_file, generated_file):
        """A .txt beside a same-named .in is compiled."""
        roles = classify_files([manifest_file, generated_file], self.dependency)

        assert roles.manifests == [manifest_file]
        assert roles.compiled == [generated_file]
        assert roles.sources_for(generated_file) == [manifest_file]

    def test_supporting_plain_and_other(self, manifest_file, generated_file, sample_setup_py):
        setup_py = ManagedFile(name="setup.py", content=sample_setup_py)
        plain = ManagedFile(name="requirements.txt", content="attrs==17.3.0\n")
        other = ManagedFile(name="constraints.txt", content="six==1.11.0\n")

        roles = classify_files(
            [manifest_file, generated_file, setup_py, plain, other], self.dependency
        )

        assert roles.supporting == [setup_py]
        assert roles.plain == [plain]
        assert roles.other == [other]

    def test_header_names_output(self):
        """A differently named lock file is compiled when its header says so."""
        base = ManagedFile(name="requirements/base.in", content="attrs\n")
        prod = ManagedFile(
            name="requirements/prod.txt",
            content=(
                "#    pip-compile --output-file requirements/prod.txt requirements/base.in\n"
                "attrs==17.3.0\n"
            ),
        )

        roles = classify_files([base, prod], self.dependency)

        assert roles.compiled == [prod]
        assert roles.sources_for(prod) == [base]

    def test_header_for_other_output_is_plain(self, load_fixture):
        """A copy of another lock file is treated as a plain pin file."""
        manifest = ManagedFile(name="requirements/test.in", content="attrs\n")
        copy = ManagedFile(
            name="requirements.txt",
            content=load_fixture("requirements", "pip_compile_unpinned.txt"),
        )

        roles = classify_files([manifest, copy], self.dependency)

        assert roles.compiled == []
        assert roles.plain == [copy]
