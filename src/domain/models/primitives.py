from dataclasses import dataclass
from decimal import Context, Decimal, Inexact, InvalidOperation
from typing import Optional, Union

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAX_UINT256 = 2**256 - 1

# uint256 has 78 digits; anything that does not fit exactly raises Inexact.
_UNITS_CONTEXT = Context(prec=100, traps=[Inexact, InvalidOperation])


def normalize_address(value: Optional[str]) -> str:
    """Lowercase hex address for checksum-insensitive comparison ("" if missing)."""
    if not value:
        return ""
    return str(value).strip().lower()


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    left, right = normalize_address(a), normalize_address(b)
    return bool(left) and left == right


@dataclass(frozen=True)
class TokenAmount:
    """Stablecoin amount in human units with a fixed number of decimals."""

    value: Decimal
    decimals: int = 6

    def __post_init__(self):
        if self.value < 0:
            raise ValueError("Token amount cannot be negative")
        if self.value.as_tuple().exponent < -self.decimals:
            raise ValueError(f"Token amount {self.value} has more than {self.decimals} decimals")

    @classmethod
    def parse(cls, raw: Union[str, int, float, Decimal], decimals: int = 6) -> "TokenAmount":
        try:
            value = Decimal(str(raw))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid token amount: {raw}") from exc
        if not value.is_finite():
            raise ValueError(f"Invalid token amount: {raw}")
        return cls(value=value, decimals=decimals)

    @classmethod
    def from_units(cls, units: int, decimals: int = 6) -> "TokenAmount":
        try:
            value = Decimal(int(units)).scaleb(-decimals, context=_UNITS_CONTEXT)
        except (Inexact, InvalidOperation) as exc:
            raise ValueError(f"Cannot represent {units} base units exactly") from exc
        return cls(value=value, decimals=decimals)

    def to_units(self) -> int:
        """Exact integer base units; never rounds."""
        try:
            scaled = self.value.scaleb(self.decimals, context=_UNITS_CONTEXT)
        except (Inexact, InvalidOperation) as exc:
            raise ValueError(f"Token amount {self.value} cannot be converted exactly") from exc
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Token amount {self.value} has more than {self.decimals} decimals")
        units = int(scaled)
        if units > MAX_UINT256:
            raise ValueError(f"Token amount {self.value} exceeds uint256")
        return units

    def __str__(self) -> str:
        return f"{self.value:f}"
