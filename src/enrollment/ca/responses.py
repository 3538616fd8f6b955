"""Classification of Puppet CA response bodies."""

import re

from enrollment.ca.crypto import starts_with_certificate
from enrollment.domain.states import SubmissionOutcome

ALREADY_PENDING_PATTERN = re.compile(r"already has a requested certificate")
ALT_NAMES_DISALLOWED_PATTERN = re.compile(
    r"contains subject alternative names.*which are disallowed", re.DOTALL
)


def classify_submission(body: str, status_code: int = 200) -> SubmissionOutcome:
    """Map the body of a CSR submission response to an outcome.

    Empty means the CA accepted the request, unless the status is an HTTP
    error, which is reported as advisory. The two known rejection messages
    are matched anywhere in the body; any other text is advisory.
    """
    text = body.strip()
    if not text:
        return SubmissionOutcome.ADVISORY if status_code >= 400 else SubmissionOutcome.SUCCESS
    if ALREADY_PENDING_PATTERN.search(text):
        return SubmissionOutcome.ALREADY_PENDING
    if ALT_NAMES_DISALLOWED_PATTERN.search(text):
        return SubmissionOutcome.ALT_NAMES_DISALLOWED
    return SubmissionOutcome.ADVISORY


def is_signed_certificate(body: str) -> bool:
    """A certificate lookup answered with a PEM certificate rather than an error."""
    return starts_with_certificate(body)
