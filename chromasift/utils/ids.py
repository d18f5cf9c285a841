"""
ChromaSift ID Utilities
Generate stable identifiers for ranges and processing passes.
"""
import uuid
from datetime import datetime


def generate_range_id() -> str:
    """
    Generate a unique identifier for a color range.

    Returns:
        Range ID string of the form ``rng-xxxxxxxx``
    """
    return f"rng-{uuid.uuid4().hex[:8]}"


def generate_run_id(prefix: str = "run") -> str:
    """
    Generate a unique ID for a processing pass, used to correlate log lines.

    Args:
        prefix: Short tag identifying the kind of pass

    Returns:
        Run ID string with embedded timestamp
    """
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    short_uuid = str(uuid.uuid4())[:8]
    return f"{prefix}-{timestamp}-{short_uuid}"
