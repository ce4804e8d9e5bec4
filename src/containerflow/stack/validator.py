"""Resource validation: does a live resource satisfy a desired spec?

Pure decision logic. Nothing here raises or touches the engine; mismatches
are logged for diagnostics and returned as a list.

Matching rules:
- image: engine image id, recorded repo-tag, or digest id with matching repo-tag
- labels: every expected label present with the same value (extra labels allowed)
- env: every expected KEY=VALUE entry present verbatim (extra entries allowed)
- cmd: checked only when expected; same length and same elements in order
- network: bridge driver and the configured network name
"""

import logging
from enum import StrEnum

from pydantic import BaseModel

from containerflow.logging_schema import LogEvent
from containerflow.stack.spec import ContainerSpec, LiveContainer, LiveNetwork

logger = logging.getLogger(__name__)

DIGEST_PREFIX = "sha256:"


class MismatchField(StrEnum):
    """Aspect of a resource that failed validation."""

    IMAGE = "image"
    LABEL = "label"
    ENV = "env"
    CMD = "cmd"
    DRIVER = "driver"
    NAME = "name"


class Mismatch(BaseModel):
    """One difference between a live resource and its desired spec."""

    field: MismatchField
    key: str | None = None
    expected: str | None = None
    actual: str | None = None

    model_config = {"frozen": True}


def image_matches(live: LiveContainer, expected_image: str) -> bool:
    # Pulled images are recorded as digests while specs name them by tag
    repo_tag = live.spec.image
    return (
        live.image_id == expected_image
        or repo_tag == expected_image
        or (live.image_id.startswith(DIGEST_PREFIX) and repo_tag == expected_image)
    )


def diff_container(live: LiveContainer, expected: ContainerSpec) -> list[Mismatch]:
    """List every way the live container differs from the expected spec."""
    mismatches: list[Mismatch] = []

    if not image_matches(live, expected.image):
        mismatches.append(
            Mismatch(
                field=MismatchField.IMAGE,
                expected=expected.image,
                actual=f"{live.image_id} ({live.spec.image})",
            )
        )

    actual_labels = live.spec.labels
    for key, value in expected.labels.items():
        if actual_labels.get(key) != value:
            mismatches.append(
                Mismatch(
                    field=MismatchField.LABEL,
                    key=key,
                    expected=value,
                    actual=actual_labels.get(key),
                )
            )

    actual_env = set(live.spec.env)
    for entry in expected.env:
        if entry not in actual_env:
            key = entry.split("=", 1)[0]
            mismatches.append(
                Mismatch(
                    field=MismatchField.ENV,
                    key=key,
                    expected=entry,
                    actual=live.spec.env_value(key),
                )
            )

    if expected.cmd:
        actual_cmd = live.spec.cmd
        if len(expected.cmd) != len(actual_cmd):
            mismatches.append(
                Mismatch(
                    field=MismatchField.CMD,
                    expected=" ".join(expected.cmd),
                    actual=" ".join(actual_cmd),
                )
            )
        else:
            for index, (want, got) in enumerate(zip(expected.cmd, actual_cmd)):
                if want != got:
                    mismatches.append(
                        Mismatch(
                            field=MismatchField.CMD,
                            key=str(index),
                            expected=want,
                            actual=got,
                        )
                    )

    _log_mismatches(live.name, mismatches)
    return mismatches


def validate_container(live: LiveContainer, expected: ContainerSpec) -> bool:
    return not diff_container(live, expected)


def diff_network(live: LiveNetwork, expected_name: str) -> list[Mismatch]:
    mismatches: list[Mismatch] = []
    if live.driver != "bridge":
        mismatches.append(
            Mismatch(field=MismatchField.DRIVER, expected="bridge", actual=live.driver)
        )
    if live.name != expected_name:
        mismatches.append(
            Mismatch(field=MismatchField.NAME, expected=expected_name, actual=live.name)
        )
    _log_mismatches(live.name, mismatches)
    return mismatches


def validate_network(live: LiveNetwork, expected_name: str) -> bool:
    return not diff_network(live, expected_name)


def _log_mismatches(resource: str, mismatches: list[Mismatch]) -> None:
    for mismatch in mismatches:
        logger.warning(
            "Resource %s mismatch on %s%s: expected %s, got %s",
            resource,
            mismatch.field.value,
            f" {mismatch.key}" if mismatch.key else "",
            mismatch.expected,
            mismatch.actual,
            extra={
                "event": LogEvent.VALIDATION_MISMATCH,
                "resource": resource,
                "field": mismatch.field.value,
            },
        )
