"""Unit tests for classify.py - failure classification."""

from autofix.classify import (
    GENERIC_FAILURE_MESSAGE,
    LOCK_ERROR_MESSAGE,
    LockErrorClassifier,
    classify_failure,
    is_dependency_install,
)
from autofix.types import Phase, Step


def make_step(step_id="node-install-deps", subsystem="node", commands=None):
    return Step(
        id=step_id,
        title="t",
        subsystem=subsystem,
        phase=Phase.NODE,
        commands=commands if commands is not None else ["npm install"],
    )


class TestIsDependencyInstall:
    """Tests for is_dependency_install."""

    def test_install_by_id_or_command(self):
        assert is_dependency_install(make_step())
        assert is_dependency_install(make_step(step_id="node-remove-node-modules", commands=["rm -rf node_modules", "npm install"]))

    def test_other_subsystems_never_count(self):
        assert not is_dependency_install(make_step(step_id="check-python-test-pytest", subsystem="checks"))

    def test_non_install_node_step(self):
        assert not is_dependency_install(make_step(step_id="node-clean-next-cache", commands=["rm -rf .next"]))


class TestClassifyFailure:
    """Tests for classify_failure."""

    def test_lock_error_on_install(self):
        output = "npm ERR! code EBUSY\nnpm ERR! syscall rename"
        assert classify_failure(make_step(), output) == LOCK_ERROR_MESSAGE

    def test_permission_denied_case_insensitive(self):
        assert classify_failure(make_step(), "Error: Permission Denied") == LOCK_ERROR_MESSAGE

    def test_lock_pattern_outside_install_is_generic(self):
        step = make_step(step_id="check-python-lint", subsystem="checks", commands=["ruff check ."])
        assert classify_failure(step, "EACCES") == GENERIC_FAILURE_MESSAGE

    def test_unmatched_output_is_generic(self):
        assert classify_failure(make_step(), "404 Not Found") == GENERIC_FAILURE_MESSAGE

    def test_custom_classifier_runs_first(self):
        class Disk:
            def classify(self, step, output):
                return "Disk full" if "ENOSPC" in output else None

        classifiers = (Disk(), LockErrorClassifier())
        assert classify_failure(make_step(), "ENOSPC EBUSY", classifiers) == "Disk full"
        assert classify_failure(make_step(), "EBUSY", classifiers) == LOCK_ERROR_MESSAGE

    def test_no_classifiers(self):
        assert classify_failure(make_step(), "EBUSY", ()) == GENERIC_FAILURE_MESSAGE
