"""Failure classification for executed steps.

Classifiers look at the combined command output of a failed step and may
return a remediation-oriented message. The first classifier that matches
wins; otherwise the generic message is used.
"""

from __future__ import annotations

import re
from typing import Protocol

from .types import Step, Subsystem

GENERIC_FAILURE_MESSAGE = "One or more commands failed"

LOCK_ERROR_MESSAGE = (
    "Dependency install failed because files are locked or not writable "
    "(EBUSY/EPERM/EACCES). Close IDEs, running dev servers and zombie file "
    "watchers that hold the project open, then retry."
)

_LOCK_PATTERNS = re.compile(
    r"EBUSY|EPERM|EACCES|resource busy|permission denied|operation not permitted"
    r"|being used by another process",
    re.IGNORECASE,
)


class FailureClassifier(Protocol):
    def classify(self, step: Step, output: str) -> str | None: ...


def is_dependency_install(step: Step) -> bool:
    if step.subsystem not in (Subsystem.NODE, Subsystem.PYTHON):
        return False
    return "install" in step.id or any(" install" in c for c in step.commands)


class LockErrorClassifier:
    """File-lock / permission failures during dependency installs."""

    def classify(self, step: Step, output: str) -> str | None:
        if is_dependency_install(step) and _LOCK_PATTERNS.search(output):
            return LOCK_ERROR_MESSAGE
        return None


DEFAULT_CLASSIFIERS: tuple[FailureClassifier, ...] = (LockErrorClassifier(),)


def classify_failure(
    step: Step,
    output: str,
    classifiers: tuple[FailureClassifier, ...] | list[FailureClassifier] = DEFAULT_CLASSIFIERS,
) -> str:
    for classifier in classifiers:
        message = classifier.classify(step, output)
        if message:
            return message
    return GENERIC_FAILURE_MESSAGE
