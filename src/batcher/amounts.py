import re

from batcher.errors import InvalidAmount

NANO_DECIMALS = 9
NANO_PER_COIN = 10**NANO_DECIMALS
MAX_NANO = 2**64 - 1

_DECIMAL_RE = re.compile(r"^([0-9]*)(?:\.([0-9]*))?$")


def parse_amount(text: str) -> int:
    """
    Convert a decimal coin amount into base units (nanotons).

    :param text: Plain decimal notation, e.g. "1.5" or ".25"

    :return: The amount scaled by 10^9
    """
    if not isinstance(text, str):
        raise InvalidAmount(f"Amount must be a string, got {type(text).__name__}")

    match = _DECIMAL_RE.match(text.strip())
    if match is None:
        raise InvalidAmount(f"Invalid amount: {text!r}")

    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        raise InvalidAmount(f"Invalid amount: {text!r}")
    if len(fraction) > NANO_DECIMALS:
        raise InvalidAmount(
            f"Amount {text!r} has more than {NANO_DECIMALS} fractional digits"
        )

    nano = int(whole or "0") * NANO_PER_COIN + int(fraction.ljust(NANO_DECIMALS, "0"))
    if nano > MAX_NANO:
        raise InvalidAmount(f"Amount {text!r} is too large")
    return nano


def parse_amounts(transfers: dict[str, str]) -> dict[str, int]:
    return {address: parse_amount(amount) for address, amount in transfers.items()}


def total_amount(amounts) -> int:
    # Sum per-destination integers, never floats
    return sum(amounts.values() if isinstance(amounts, dict) else amounts)


def format_amount(nano: int) -> str:
    """Render base units as a decimal coin string without trailing zeros."""
    whole, fraction = divmod(nano, NANO_PER_COIN)
    if not fraction:
        return str(whole)
    return f"{whole}.{fraction:0{NANO_DECIMALS}d}".rstrip("0")
