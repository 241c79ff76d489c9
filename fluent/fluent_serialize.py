from __future__ import annotations

import json
import re
from typing import Any, Optional

import yaml

from fluent.fluent_codec import encode


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        enc = encoding or 'utf-8'
        try:
            return data.decode(enc, errors='replace')
        except LookupError:
            # unknown charset name
            return data.decode('utf-8', errors='replace')
    return str(data)


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json' or 'yaml', or None when neither is indicated.
    Uses Content-Type first; falls back to simple data sniffing if provided.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct or 'x-yaml' in ct:
        return 'yaml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('[') or s.startswith('{'):
            return 'json'
        if s.startswith('- ') or s.startswith('-\n') or s.startswith('---'):
            return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def loads(data: bytes | bytearray | str,
          *,
          content_type: Optional[str] = None,
          fmt: Optional[str] = None) -> list:
    """
    Parse a serialized chain (JSON or YAML text) into its encoded list form.
    If fmt is None, uses content_type, then sniffing, then tries YAML.
    Raises ValueError when the text does not hold a chain.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text) or 'yaml').lower()
    if f == 'json':
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            # JSON-labelled text may still be YAML (a JSON superset)
            try:
                parsed = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid chain text: {e}") from e
    elif f == 'yaml':
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid chain text: {e}") from e
    else:
        raise ValueError(f"Unsupported serialization format: {fmt!r}")

    if isinstance(parsed, dict) and isinstance(parsed.get("chain"), list):
        parsed = parsed["chain"]
    if not isinstance(parsed, list):
        raise ValueError(f"Serialized chain must be a list, got {type(parsed).__name__}")
    return parsed


def dumps(chain, *, fmt: str = 'json', pretty: bool = False) -> str:
    """
    Convert a chain (or navigator) into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    inner = getattr(chain, "chain", chain)
    built = encode(inner)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "loads",
    "dumps",
    "detect_format",
]
