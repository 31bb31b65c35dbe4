# backend/mockup_config.py

import json
from pathlib import Path
from typing import List, Union

from pydantic import TypeAdapter, ValidationError

from .errors import ConfigError
from .model import MockupSpec
from .utils import mockup_slug

_SPEC_LIST = TypeAdapter(List[MockupSpec])


def parse_mockup_specs(raw: object) -> List[MockupSpec]:
    """
    Validate a decoded mockups.json document.

    Every record needs a `type` whose file name component is unique, a
    `prompt` holding the {artwork_subject} placeholder and a positive
    [width, height] `size`.
    An empty list is rejected: the service has nothing to generate.
    """
    try:
        specs = _SPEC_LIST.validate_python(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid mockup configuration: {e}") from e

    if not specs:
        raise ConfigError("Mockup configuration is empty")

    # Archive entry names derive from the type, so two types must not share a slug.
    seen = {}
    for spec in specs:
        slug = mockup_slug(spec.type)
        if slug in seen:
            raise ConfigError(
                f"Mockup types {seen[slug]!r} and {spec.type!r} would produce the same file name ({slug})"
            )
        seen[slug] = spec.type
    return specs


def load_mockup_specs(path: Union[str, Path]) -> List[MockupSpec]:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Mockup configuration not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Mockup configuration is not valid JSON ({path}): {e}") from e
    return parse_mockup_specs(raw)
