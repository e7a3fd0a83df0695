"""
Asset Model and Amount Codec

The ledger core only ever sees an asset identifier and an unsigned integer
amount in that asset's smallest unit. It never assumes decimal semantics.

This module is the boundary where human-entered amounts ("10.5 USDC")
become integers and back. Getting the decimals wrong here is exactly the
kind of bug that silently produces wrong money math, so parsing is strict:
- No silent rounding (too many fractional digits is an error)
- No negative amounts
- No values above the representable maximum
"""

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from debt_ledger.config import get_settings


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


class AssetError(ValueError):
    """Base exception for asset and amount parsing."""
    pass


class InvalidAssetError(AssetError):
    """Asset identifier is neither a known symbol nor a valid address."""
    pass


class InvalidAmountError(AssetError):
    """Amount string cannot be represented in the asset's smallest unit."""
    pass


class AssetInfo(BaseModel):
    """An asset the ledger can track: where it lives and how to scale it."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Asset identifier, e.g. a token contract address")
    decimals: int = Field(..., ge=0, le=77, description="Digits after the decimal point")
    symbol: str = Field(..., min_length=1, description="Display symbol")


SUPPORTED_ASSETS: dict[str, AssetInfo] = {
    "ETH": AssetInfo(
        address="0x0000000000000000000000000000000000000000",
        decimals=18,
        symbol="ETH",
    ),
    # Sepolia
    "USDC": AssetInfo(
        address="0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        decimals=6,
        symbol="USDC",
    ),
}


def is_address(value: str) -> bool:
    """Check for a 0x-prefixed, 20-byte hex address."""
    return bool(ADDRESS_PATTERN.match(value))


class AssetRegistry:
    """
    Symbol/address lookup plus the amount codec.

    Starts with SUPPORTED_ASSETS; more can be registered at runtime.
    """

    def __init__(
        self,
        assets: Optional[dict[str, AssetInfo]] = None,
        default_decimals: Optional[int] = None,
        max_amount: Optional[int] = None,
    ):
        settings = get_settings().assets
        self._assets = dict(SUPPORTED_ASSETS if assets is None else assets)
        self._default_decimals = (
            settings.default_decimals if default_decimals is None else default_decimals
        )
        self._max_amount = settings.max_amount if max_amount is None else max_amount

    @property
    def symbols(self) -> list[str]:
        return list(self._assets)

    def register(self, asset: AssetInfo) -> None:
        """Add or replace an asset under its (upper-cased) symbol."""
        self._assets[asset.symbol.upper()] = asset

    def resolve(self, identifier: str) -> AssetInfo:
        """
        Resolve a symbol (case-insensitive) or an address to an AssetInfo.

        Unknown but well-formed addresses get the default decimals and a
        shortened address as their symbol.
        """
        known = self._assets.get(identifier.upper())
        if known is not None:
            return known

        if is_address(identifier):
            found = self.find_by_address(identifier)
            if found is not None:
                return found
            return AssetInfo(
                address=identifier,
                decimals=self._default_decimals,
                symbol=identifier[:8] + "...",
            )

        raise InvalidAssetError(
            f"Invalid asset: {identifier}. Supported assets are "
            f"{', '.join(self._assets)}, or a valid address."
        )

    def find_by_address(self, address: str) -> Optional[AssetInfo]:
        """Case-insensitive lookup among registered assets."""
        wanted = address.lower()
        for asset in self._assets.values():
            if asset.address.lower() == wanted:
                return asset
        return None

    def parse_amount(self, raw: str, asset: AssetInfo) -> int:
        """
        Parse a decimal string into the asset's smallest unit.

        "10.5" with 6 decimals -> 10500000.
        """
        text = raw.strip()
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount format: {raw}")

        if not value.is_finite():
            raise InvalidAmountError(f"Invalid amount format: {raw}")
        if value < 0:
            raise InvalidAmountError(f"Amount cannot be negative: {raw}")

        with localcontext() as ctx:
            ctx.prec = len(text) + asset.decimals + 10
            scaled = value.scaleb(asset.decimals)
            fractional = scaled != scaled.to_integral_value()

        if fractional:
            raise InvalidAmountError(
                f"Amount {raw} has more than {asset.decimals} decimal places "
                f"for asset {asset.symbol}"
            )

        if scaled > self._max_amount:
            raise InvalidAmountError(
                f"Amount {raw} is too large for asset {asset.symbol} "
                f"({asset.decimals} decimals)"
            )
        return int(scaled)

    def format_amount(self, amount: int, asset: AssetInfo) -> str:
        """Render smallest units for display, e.g. 10000000 -> '10.0 USDC'."""
        sign = "-" if amount < 0 else ""
        whole, fraction = divmod(abs(amount), 10 ** asset.decimals)
        fraction_text = str(fraction).rjust(asset.decimals, "0").rstrip("0") or "0"
        return f"{sign}{whole}.{fraction_text} {asset.symbol}"

    def describe(self, asset_id: str) -> AssetInfo:
        """
        Best-effort AssetInfo for an asset identifier found in the ledger.

        Never fails: anything unknown is rendered with default decimals.
        """
        found = self.find_by_address(asset_id)
        if found is not None:
            return found
        return AssetInfo(
            address=asset_id,
            decimals=self._default_decimals,
            symbol=asset_id[:8] + "..." if len(asset_id) > 8 else asset_id,
        )
