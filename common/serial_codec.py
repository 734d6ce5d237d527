"""
Serial protocol codec.

Commands travel as one line each::

    action:credential:opt1=val1,opt2=val2\\n

with the options segment (and its colon) left out when there are no options.
Replies are either ``STATUS:message\\n`` where STATUS is OK/SUCCESS or
ERROR/FAIL, or a single JSON object line carrying a structured payload.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from common.constants import LINE_TERMINATOR
from common.errors import MalformedCommandError, MalformedResponseError
from common.protocol_definitions import ActionOptions, ActionResponse

SUCCESS_TOKENS = ('OK', 'SUCCESS')
FAILURE_TOKENS = ('ERROR', 'FAIL')


@dataclass
class SerialCommand:
    """A decoded command line."""
    action: str
    credential: str
    options: Dict[str, str] = field(default_factory=dict)

    def to_options(self) -> ActionOptions:
        """Convert the raw option pairs into typed action options."""
        raw_delay = self.options.get('delay', '0') or '0'
        try:
            delay = int(raw_delay)
        except ValueError:
            raise MalformedCommandError(f"Invalid delay: {raw_delay}")
        if delay < 0:
            raise MalformedCommandError(f"Invalid delay: {raw_delay}")
        force = self.options.get('force', 'false').lower() in ('true', '1')
        return ActionOptions(delay=delay, force=force)


def encode_command(action: str, credential: str,
                   options: Optional[Union[ActionOptions, Dict[str, Any]]] = None) -> str:
    """Encode a command as a newline-terminated line."""
    for name, value in (('action', action), ('credential', credential)):
        if ':' in value or '\n' in value:
            raise MalformedCommandError(f"{name} may not contain ':' or newlines")

    if isinstance(options, ActionOptions):
        pairs = options.to_wire()
    else:
        pairs = {}
        for key, value in (options or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            pairs[key] = str(value)

    options_str = ','.join(f"{key}={value}" for key, value in pairs.items())
    if options_str:
        return f"{action}:{credential}:{options_str}{LINE_TERMINATOR}"
    return f"{action}:{credential}{LINE_TERMINATOR}"


def decode_command(line: str) -> SerialCommand:
    """Decode a command line; fewer than two fields is malformed."""
    parts = line.strip().split(':', 2)
    if len(parts) < 2 or not parts[0]:
        raise MalformedCommandError()

    action = parts[0].strip().lower()
    credential = parts[1]
    options: Dict[str, str] = {}
    if len(parts) == 3 and parts[2]:
        for pair in parts[2].split(','):
            if '=' not in pair:
                continue
            key, value = pair.split('=', 1)
            if key.strip():
                options[key.strip()] = value.strip()

    return SerialCommand(action=action, credential=credential, options=options)


def encode_ok(message: str) -> str:
    """Encode a success reply."""
    return f"OK:{_single_line(message)}{LINE_TERMINATOR}"


def encode_error(message: str) -> str:
    """Encode a failure reply."""
    return f"ERROR:{_single_line(message)}{LINE_TERMINATOR}"


def encode_payload(payload: Dict[str, Any]) -> str:
    """Encode a structured reply as one JSON line."""
    return json.dumps(payload, separators=(',', ':')) + LINE_TERMINATOR


def decode_payload(line: str) -> Optional[Dict[str, Any]]:
    """Return the JSON object on a reply line, or None if it is not one."""
    text = line.strip()
    if not text.startswith('{'):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def decode_response(line: str) -> ActionResponse:
    """
    Decode a reply line.

    Unrecognized leading tokens are accepted as a success carrying the raw
    text, so newer hosts with extra reply forms keep working.
    """
    text = line.strip()
    if not text:
        raise MalformedResponseError("Empty reply")

    payload = decode_payload(text)
    if payload is not None:
        return ActionResponse.from_dict(payload)

    token, _, message = text.partition(':')
    token = token.strip().upper()
    if token in SUCCESS_TOKENS:
        return ActionResponse(True, message or "Command executed successfully")
    if token in FAILURE_TOKENS:
        return ActionResponse(False, message or "Command failed")
    return ActionResponse(True, text)


def _single_line(message: str) -> str:
    return ' '.join(str(message).splitlines())
