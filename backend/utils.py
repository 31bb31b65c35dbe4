import datetime
import re
import uuid
from typing import Optional

from .imaging import OUTPUT_EXTENSION
from .model import PLACEHOLDER, MockupSpec

_UNSAFE = re.compile(r"[\\/\x00-\x1f\x7f]+")
_WHITESPACE = re.compile(r"\s+")


def gen_session_id() -> str:
    return uuid.uuid4().hex


def render_prompt(template: str, title: str) -> str:
    return template.replace(PLACEHOLDER, title)


def safe_part(value: str) -> str:
    """Replace path separators and control characters so `value` stays one path segment."""
    return _UNSAFE.sub("-", value).strip()


def mockup_slug(mockup_type: str) -> str:
    """Filename component for a mockup type: whitespace runs become `_`, then unsafe characters `-`."""
    return safe_part(_WHITESPACE.sub("_", mockup_type.strip()))


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def build_filename(
    spec: MockupSpec,
    title: str,
    collection: str,
    prefix: str = "AG",
    day: Optional[datetime.date] = None,
    ext: str = OUTPUT_EXTENSION,
) -> str:
    """
    {prefix}_{collection}_{title}_{YYYY-MM-DD}_MOCKUP_{type}.{ext}

    Whitespace runs in the mockup type become a single underscore.
    """
    day = day or utc_today()
    mockup_type = mockup_slug(spec.type)
    return (
        f"{safe_part(prefix)}_{safe_part(collection)}_{safe_part(title)}_"
        f"{day.isoformat()}_MOCKUP_{mockup_type}.{ext}"
    )
