"""Fetching asset prices from an HTTP price service."""

from __future__ import annotations

import json
import re
import urllib.error
import urllib.request
from dataclasses import dataclass

DEFAULT_PRICE_URL = "http://localhost:3001/price/"
_U64_MASK = (1 << 64) - 1
_INTEGER_PART = re.compile(r"-?\d+")


class PriceFetchError(Exception):
    """The price service could not be reached or gave no usable price."""


@dataclass(frozen=True)
class _Number:
    literal: str

    @property
    def integer(self) -> int:
        match = _INTEGER_PART.match(self.literal)
        return int(match.group()) if match else 0


def _reject_constant(name: str) -> None:
    raise ValueError(f"unsupported constant {name}")


def parse_price(body: str, asset_id: str) -> int | None:
    """Read the integer part of the number stored under ``asset_id`` in a JSON object."""
    try:
        value = json.loads(
            body,
            parse_int=_Number,
            parse_float=_Number,
            parse_constant=_reject_constant,
            object_pairs_hook=list,
        )
    except ValueError:
        return None
    if not isinstance(value, list):
        return None
    found = next((v for k, v in value if k == asset_id), None)
    if not isinstance(found, _Number):
        return None
    return found.integer & _U64_MASK


def price_url(base: str, asset_id: int) -> str:
    """The endpoint for an asset: the base URL followed by the asset id."""
    return base + json.dumps(int(asset_id))


def fetch_price(asset_id: int, base: str = DEFAULT_PRICE_URL, timeout: float = 2.0) -> int:
    """Request the current price of an asset from the price service."""
    url = price_url(base, asset_id)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            status = response.status
            raw = response.read()
    except urllib.error.HTTPError as exc:
        raise PriceFetchError(f"unexpected status code: {exc.code}") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise PriceFetchError(f"request failed: {exc}") from exc
    if status != 200:
        raise PriceFetchError(f"unexpected status code: {status}")
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise PriceFetchError("no UTF-8 body") from exc
    price = parse_price(body, json.dumps(int(asset_id)))
    if price is None:
        raise PriceFetchError(f"unable to extract price from the response: {body!r}")
    return price