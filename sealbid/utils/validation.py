"""
Input Validation - argument checks for auction operations.

Every validator returns (is_valid, error_message) so callers can turn a
failure into a reported INVALID_INPUT outcome instead of an exception.
"""

from typing import Any, Tuple

# =============================================================================
# Constants
# =============================================================================

# Amounts and heights are unsigned 128-bit integers
MAX_UINT = 2**128 - 1

DEFAULT_MAX_ITEM_LENGTH = 128
MAX_IDENTITY_LENGTH = 128


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = 0,
    max_val: int = MAX_UINT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass but never a valid amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, max_amount: int = MAX_UINT) -> Tuple[bool, str]:
    """Validate a token amount."""
    return validate_integer(amount, "amount", 0, max_amount)


def validate_height(height: Any, name: str = "height") -> Tuple[bool, str]:
    """Validate a logical clock height."""
    return validate_integer(height, name, 0, MAX_UINT)


def validate_auction_id(auction_id: Any) -> Tuple[bool, str]:
    """Validate an auction identifier."""
    return validate_integer(auction_id, "auction_id", 0, MAX_UINT)


def validate_identity(identity: Any, name: str = "caller") -> Tuple[bool, str]:
    """Validate a caller identity (non-empty text)."""
    if not isinstance(identity, str):
        return False, f"{name} must be str, got {type(identity).__name__}"

    if not identity:
        return False, f"{name} must not be empty"

    if len(identity) > MAX_IDENTITY_LENGTH:
        return False, f"{name} exceeds max length {MAX_IDENTITY_LENGTH}"

    return True, ""


def validate_item(item: Any, max_length: int = DEFAULT_MAX_ITEM_LENGTH) -> Tuple[bool, str]:
    """
    Validate an auction item description.

    Args:
        item: Descriptive payload
        max_length: Maximum length in characters

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(item, str):
        return False, f"item must be str, got {type(item).__name__}"

    if len(item) > max_length:
        return False, f"item exceeds max length {max_length}, got {len(item)}"

    return True, ""


__all__ = [
    "validate_integer",
    "validate_amount",
    "validate_height",
    "validate_auction_id",
    "validate_identity",
    "validate_item",
    "MAX_UINT",
    "DEFAULT_MAX_ITEM_LENGTH",
]
