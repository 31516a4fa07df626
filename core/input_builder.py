"""
core/input_builder.py

Turns raw request fields into the normalized `Input` the rest of the pipeline uses.
"""

from typing import Optional, Tuple

from shared.errors import InvalidCommandError, ValidationError
from shared.models import FlexIdType, Input, StructuredInput
from shared.utils import parse_numeric_param


def require_command(cmd: Optional[str]) -> str:
    """Return the utterance, or raise InvalidCommandError when it is missing or blank."""
    if cmd is None or not cmd.strip():
        raise InvalidCommandError()
    return cmd


def validate_params(
    uid: Optional[str],
    flexidtype: Optional[str],
    flex_id: Optional[str] = None
) -> Tuple[int, str, FlexIdType]:
    """
    Parse the identity fields of a request.

    Args:
        uid (Optional[str]): Numeric user id; absent or empty means 0 (unresolved)
        flexidtype (Optional[str]): Numeric channel-type code; absent or empty means 0
        flex_id (Optional[str]): Channel address supplied by the transport layer

    Returns:
        Tuple[int, str, FlexIdType]: (user id, flex id, flex id type)

    Raises:
        ValidationError: a field is present but not a number, the user id is
            negative, or the channel-type code is unknown.
    """
    user_id = parse_numeric_param("uid", uid)
    if user_id < 0:
        raise ValidationError(f"invalid uid: {uid!r} must not be negative")

    type_code = parse_numeric_param("flexidtype", flexidtype)
    try:
        flex_id_type = FlexIdType(type_code)
    except ValueError:
        raise ValidationError(f"invalid flexidtype: unknown channel type {type_code}") from None

    return user_id, (flex_id or "").strip(), flex_id_type


def build_input(
    structured_input: StructuredInput,
    uid: Optional[str],
    flexidtype: Optional[str],
    flex_id: Optional[str] = None
) -> Input:
    """Validate the identity fields and wrap the classified utterance into an Input."""
    user_id, fid, fid_type = validate_params(uid, flexidtype, flex_id)
    return Input(
        structured_input=structured_input,
        user_id=user_id,
        flex_id=fid,
        flex_id_type=fid_type,
    )
