#!/usr/bin/env python3
"""Event-stream framing and response-shape dispatch for polled bodies."""
import base64
import json
import math
from typing import Any, List, Optional

from .sample_extractor import extract_samples


def data_frame(payload: Any) -> str:
    """``data: <json>`` followed by the blank line that ends a frame."""
    return f"data: {json.dumps(payload, separators=(',', ':'), ensure_ascii=False, allow_nan=False)}\n\n"


def comment_frame(text: str) -> str:
    """Comment frame; listeners never see it as an event."""
    single_line = ' '.join(str(text).splitlines())
    return f": {single_line}\n\n"


def _json_number(value: float) -> Optional[float]:
    # Match JSON.stringify: integral values without a fraction, non-finite as null
    if not math.isfinite(value):
        return None
    if value.is_integer():
        return int(value)
    return value


def samples_frame(samples: List[float]) -> str:
    return data_frame([_json_number(v) for v in samples])


def _reject_constant(name: str):
    # NaN and Infinity are not JSON; browsers reject them
    raise ValueError(f"non-standard JSON constant {name}")


def _finite_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {literal}")
    return value


def is_json_content_type(content_type: str) -> bool:
    media_type = (content_type or '').split(';', 1)[0].strip().lower()
    return media_type == 'application/json' or media_type.endswith('+json')


def frame_body(content_type: str, body: bytes, text: str) -> str:
    """Turn one successful poll response into a frame.

    * JSON list: framed as is
    * JSON object with a list under ``samples``: that list
    * any other JSON: samples extracted from its re-encoded text
    * anything else: samples extracted from the text, or the raw body
      base64-encoded when it holds no numbers
    """
    if is_json_content_type(content_type):
        try:
            value = json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)
        except ValueError:
            # Mislabelled or non-standard JSON, handled as text below
            pass
        else:
            if isinstance(value, list):
                return data_frame(value)
            if isinstance(value, dict) and isinstance(value.get('samples'), list):
                return data_frame(value['samples'])
            return samples_frame(extract_samples(json.dumps(value)))

    samples = extract_samples(text)
    if not samples:
        return data_frame({'b64': base64.b64encode(body).decode('ascii')})
    return samples_frame(samples)
