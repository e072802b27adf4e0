"""Type-aware parameter validators over an :class:`~rtxspec.models.EffectiveDomain`.

These functions are the "validators" half of what the resolver derives from a
spec: given the effective domain of a parameter on a model (and license
context), decide whether a concrete value is acceptable.

* :func:`token_matches_type` -- syntactic check of one command-line token
  against a semantic type tag, used by the template parser.
* :func:`rejection_reason` -- full domain check; returns ``None`` when the
  value is acceptable or a human-readable reason otherwise.
* :func:`check_value` -- like :func:`rejection_reason` but raises
  :class:`~rtxspec.exceptions.ParameterValidationError`.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional

from rtxspec.exceptions import ParameterValidationError
from rtxspec.models import EffectiveDomain, VariantDomain

INT_TYPES = frozenset({"int", "integer", "number"})
STRING_TYPES = frozenset({"string", "text", "str"})
BOOL_TYPES = frozenset({"bool", "boolean", "switch"})
KNOWN_TYPES = INT_TYPES | STRING_TYPES | BOOL_TYPES | frozenset(
    {"enum", "ip", "ipv4", "address", "ipv6", "ip-range", "hex", "keyword"}
)

TRUE_TOKENS = frozenset({"on", "yes", "true", "enable"})
FALSE_TOKENS = frozenset({"off", "no", "false", "disable"})

_INT_RE = re.compile(r"^-?\d+$")
_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def as_token(value: Any) -> str:
    """Render a structured value as a command-line token."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def as_int(value: Any) -> Optional[int]:
    """Return *value* as an ``int`` or ``None`` if it is not integral."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    return None


def token_matches_type(type_tag: str, token: str) -> bool:
    """Return ``True`` when *token* is syntactically valid for *type_tag*.

    No range or enum membership is checked here.
    """
    tag = type_tag.lower()
    if tag in INT_TYPES:
        return as_int(token) is not None
    if tag in BOOL_TYPES:
        return token.lower() in TRUE_TOKENS | FALSE_TOKENS
    if tag in ("ip", "ipv4", "address"):
        return _is_ip(token, 4)
    if tag == "ipv6":
        return _is_ip(token, 6)
    if tag == "ip-range":
        return _is_ip_range(token)
    if tag == "hex":
        return bool(_HEX_RE.match(token))
    return bool(token)


def rejection_reason(domain: EffectiveDomain, value: Any) -> Optional[str]:
    """Check *value* against *domain*.

    Returns:
        ``None`` if the value is acceptable, otherwise a short reason.
    """
    if domain.variants:
        reasons = []
        for variant in domain.variants:
            reason = _variant_rejection(variant, value)
            if reason is None:
                return None
            reasons.append(f"{variant.name}: {reason}")
        return "matches no variant (" + "; ".join(reasons) + ")"

    if domain.enum_values:
        token = as_token(value)
        if token not in domain.enum_values:
            return f"not one of {', '.join(domain.enum_values)}"
        return None

    return _scalar_rejection(
        domain.type, value, domain.range_min, domain.range_max
    )


def check_value(domain: EffectiveDomain, value: Any) -> None:
    """Validate *value* against *domain*.

    Raises:
        ParameterValidationError: If the value is outside the domain.
    """
    reason = rejection_reason(domain, value)
    if reason is not None:
        scope = f" on {domain.model}" if domain.model else ""
        raise ParameterValidationError(domain.parameter, value, reason + scope)


def _scalar_rejection(
    type_tag: str,
    value: Any,
    range_min: Optional[int],
    range_max: Optional[int],
) -> Optional[str]:
    tag = type_tag.lower()
    if tag in INT_TYPES:
        number = as_int(value)
        if number is None:
            return "not an integer"
        if range_min is not None and number < range_min:
            return f"below minimum {range_min}"
        if range_max is not None and number > range_max:
            return f"above maximum {range_max}"
        return None

    if tag in STRING_TYPES:
        if not isinstance(value, str):
            return "not a string"
        if range_min is not None and len(value) < range_min:
            return f"shorter than {range_min} characters"
        if range_max is not None and len(value) > range_max:
            return f"longer than {range_max} characters"
        return None

    if tag in BOOL_TYPES and isinstance(value, bool):
        return None

    if not token_matches_type(tag, as_token(value)):
        return f"not a valid {tag}"
    return None


def _variant_rejection(variant: VariantDomain, value: Any) -> Optional[str]:
    token = as_token(value)
    if variant.keyword:
        if variant.type == "keyword":
            return None if token == variant.keyword else f"expected '{variant.keyword}'"
        prefix = variant.keyword + " "
        if not token.startswith(prefix):
            return f"expected '{variant.keyword} <value>'"
        token = token[len(prefix):].strip()
        if not token:
            return "missing value"
    if variant.pattern and not re.fullmatch(variant.pattern, token):
        return f"does not match {variant.pattern}"
    raw: Any = token
    if variant.type.lower() in INT_TYPES:
        raw = as_int(token)
        if raw is None:
            return "not an integer"
    return _scalar_rejection(variant.type, raw, variant.range_min, variant.range_max)


def _is_ip(token: str, version: int) -> bool:
    try:
        address = ipaddress.ip_address(token)
    except ValueError:
        return False
    return address.version == version


def _is_ip_range(token: str) -> bool:
    if "/" in token:
        try:
            ipaddress.ip_network(token, strict=False)
        except ValueError:
            return False
        return True
    low, sep, high = token.partition("-")
    if not sep:
        return _is_ip(token, 4)
    try:
        start = ipaddress.IPv4Address(low)
        end = ipaddress.IPv4Address(high)
    except ValueError:
        return False
    return start <= end
