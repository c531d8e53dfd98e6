"""Vendor status vocabulary and fail-code dictionary."""

from __future__ import annotations

from enum import IntEnum
from typing import Mapping


class StatusCode(IntEnum):
    """Remote job status codes reported by the history endpoint."""

    SUCCESS = 10
    PROCESSING = 20
    FAILED = 30
    POST_PROCESSING = 42
    FINALIZING = 45
    COMPLETED = 50


def status_name(status_code: int) -> str:
    """Return a readable name, ``UNKNOWN(<code>)`` for codes outside the vocabulary."""

    try:
        return StatusCode(status_code).name
    except ValueError:
        return f"UNKNOWN({status_code})"


CONTENT_FILTER_CODES: frozenset[str] = frozenset(
    {"1063", "2003", "2004", "2005", "2038", "2039", "2041", "2042", "2044", "2048"}
)
QUOTA_EXHAUSTED_CODES: frozenset[str] = frozenset({"1006", "4001", "5000"})

FAIL_CODE_MESSAGES: Mapping[str, str] = {
    "-7": "Agent submission failed: unable to generate image/video",
    "-6": "Operation aborted",
    "-5": "Client blend parameters are unavailable",
    "-4": "Generic client error",
    "-3": "File failed to load",
    "-2": "Network offline, check the connection and retry",
    "-1": "Request is still being processed",
    "0": "Operation succeeded",
    "1": "Request rate limit reached",
    "1000": "Invalid input parameters",
    "1001": "Invalid input parameters",
    "1002": "Unable to generate, please retry later",
    "1006": "Insufficient credits",
    "1014": "Login or registration failed, please retry later",
    "1015": "Unable to log in, please retry later",
    "1018": "Daily generation limit reached, try again tomorrow",
    "1019": "Account failed the security check",
    "1021": "Commercial activity flagged as risky and blocked",
    "1057": "Too many users or attempts, please retry later",
    "1063": "Prompt may violate community guidelines, please revise it",
    "1157": "Too many users are generating right now, please retry later",
    "1158": "Selected voice does not support this language or input",
    "1159": "Upload blocked by potential copyright restrictions",
    "1161": "Input mixes Chinese and English in an unsupported way",
    "1162": "Text contains an unsupported language",
    "1189": "Asset state is invalid",
    "1190": "Style code unavailable, try another one",
    "2001": "Unable to load feed content",
    "2002": "An error occurred during generation, please retry",
    "2003": "Uploaded image may contain prohibited content",
    "2004": "Generated video may contain inappropriate content",
    "2005": "Prompt may contain prohibited content, please revise it",
    "2006": "No suitable model found for the random prompt",
    "2007": "Unable to fetch the user portfolio",
    "2008": "Unable to fetch the generation history",
    "2009": "Unable to publish, please retry",
    "2010": "Unable to fetch home page data",
    "2011": "Upscaling the video or image failed",
    "2012": "Unable to fetch panel configuration",
    "2013": "Unable to fetch access restriction configuration",
    "2014": "Access restricted",
    "2015": "Content has already been published",
    "2016": "Unable to fetch invitation status",
    "2020": "Too many attempts, please retry later",
    "2024": "No publishing permission, contact support",
    "2025": "Please enter a valid invitation code",
    "2026": "Invitation code has already been used",
    "2027": "Binding the invitation code failed",
    "2028": "Unable to grant author permissions",
    "2031": "Generation history record was deleted",
    "2035": "Unusual account activity, operation blocked",
    "2037": "Unable to download, please retry",
    "2038": "Text may contain prohibited content, please revise it",
    "2039": "Uploaded image may contain prohibited content",
    "2041": "Image content seriously violates the rules, operation blocked",
    "2042": "Uploaded video may contain prohibited content",
    "2043": "Security verification failed, operation blocked",
    "2044": "Uploaded audio may contain prohibited content",
    "2046": "No valid segmentation subject found",
    "2047": "Image segmentation failed, please retry",
    "2048": "Image may contain inappropriate or copyrighted content",
    "2049": "Your IP or text triggered risk control",
    "2050": "Text involves copyright issues",
    "2056": "Input audio contains disallowed English content",
    "2203": "Uploaded image blocked by copyright",
    "2204": "Generated image blocked by copyright",
    "3021": "Feature not supported by this beta model",
    "4001": "External account has insufficient credits",
    "4003": "Missing permission for this operation",
    "4007": "Unable to generate sound effects for the video",
    "4101": "No person or character recognised in the video",
    "4102": "Video or image dimensions are too small",
    "4103": "Video or image resolution or size is too large",
    "4104": "Video is shorter than the minimum duration",
    "4105": "Video is longer than the maximum duration",
    "4106": "Character proportions differ between image and video",
    "4107": "Video template is incompatible with the input image",
    "5000": "Insufficient credits",
    "10020": "Rate limit reached for non-commercial regions",
}


def describe_fail_code(fail_code: str | None, fail_message: str | None = None) -> str:
    """Return a best-effort human-readable message for a fail code."""

    if not fail_code and not fail_message:
        return "generation failed"
    if fail_code and fail_code in FAIL_CODE_MESSAGES:
        return FAIL_CODE_MESSAGES[fail_code]
    if fail_message:
        return fail_message
    return f"generation failed, code: {fail_code}"


__all__ = [
    "CONTENT_FILTER_CODES",
    "FAIL_CODE_MESSAGES",
    "QUOTA_EXHAUSTED_CODES",
    "StatusCode",
    "describe_fail_code",
    "status_name",
]
