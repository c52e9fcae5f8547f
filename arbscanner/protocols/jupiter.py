from typing import Any, Dict, List, Optional
import aiohttp

from ..config.settings import VenueConfig
from ..config.venues import JUPITER
from ..core.exceptions import (
    QuoteError,
    NoLiquidity,
    InvalidQuoteData,
    ProviderUnavailable
)
from ..models.quote import Quote, RouteLeg, Venue
from .base import QuoteProvider, apply_slippage, parse_amount

# Error codes the quote API returns when no route exists for a pair
NO_ROUTE_ERRORS = (
    "COULD_NOT_FIND_ANY_ROUTE",
    "NO_ROUTES_FOUND",
    "TOKEN_NOT_TRADABLE",
    "ROUTE_PLAN_DOES_NOT_CONSUME_ALL_THE_AMOUNT"
)

class JupiterProvider(QuoteProvider):
    """Jupiter aggregator quotes over its REST API."""
    venue = Venue.JUPITER

    def __init__(
        self,
        config: Optional[VenueConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        only_direct_routes: bool = False
    ):
        super().__init__(
            config or VenueConfig(base_url=JUPITER.base_url, fee_bps=JUPITER.fee_bps),
            session
        )
        self.only_direct_routes = only_direct_routes

    @property
    def status_path(self) -> str:
        return JUPITER.status_path

    def _http_error(self, status: int, body: str) -> QuoteError:
        if status in (400, 404) and any(code in body for code in NO_ROUTE_ERRORS):
            return NoLiquidity(f"No route: {body[:200]}", venue=self.venue.value)
        return ProviderUnavailable(f"API error: {status} {body[:200]}", venue=self.venue.value)

    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        slippage_bps: int = 50
    ) -> Quote:
        if amount_in <= 0:
            raise InvalidQuoteData(f"Invalid input amount: {amount_in}", venue=self.venue.value)

        data = await self._request_json("/quote", {
            "inputMint": input_asset,
            "outputMint": output_asset,
            "amount": amount_in,
            "slippageBps": slippage_bps,
            "onlyDirectRoutes": self.only_direct_routes
        })
        return self.parse_quote(data, input_asset, output_asset, amount_in, slippage_bps)

    def parse_quote(
        self,
        data: Any,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        slippage_bps: int
    ) -> Quote:
        """Normalize a quote response."""
        if not isinstance(data, dict):
            raise InvalidQuoteData("Unexpected quote payload", venue=self.venue.value)
        if data.get("error"):
            raise NoLiquidity(str(data["error"]), venue=self.venue.value)

        try:
            out_amount = parse_amount(data.get("outAmount"))
        except InvalidQuoteData as e:
            raise InvalidQuoteData(e.message, venue=self.venue.value)
        if out_amount <= 0:
            raise NoLiquidity(
                f"Zero output for {input_asset}/{output_asset}",
                venue=self.venue.value
            )

        threshold = data.get("otherAmountThreshold")
        try:
            out_with_slippage = (
                parse_amount(threshold) if threshold is not None
                else apply_slippage(out_amount, slippage_bps)
            )
            price_impact = float(data.get("priceImpactPct") or 0)
        except (InvalidQuoteData, ValueError, TypeError):
            raise InvalidQuoteData("Malformed slippage or price impact", venue=self.venue.value)

        return Quote(
            venue=self.venue,
            input_asset=input_asset,
            output_asset=output_asset,
            in_amount=amount_in,
            out_amount=out_amount,
            out_amount_with_slippage=out_with_slippage,
            route=tuple(self._parse_route(data.get("routePlan") or [])),
            price_impact=abs(price_impact)
        )

    def _parse_route(self, route_plan: List[Dict]) -> List[RouteLeg]:
        legs = []
        for step in route_plan:
            info = step.get("swapInfo") if isinstance(step, dict) else None
            # Older responses carry a list of hops per step
            hops = info if isinstance(info, list) else [info]
            for hop in hops:
                if not isinstance(hop, dict):
                    continue
                try:
                    legs.append(RouteLeg(
                        label=hop.get("label") or self.venue.value,
                        amm_key=hop.get("ammKey", ""),
                        input_asset=hop["inputMint"],
                        output_asset=hop["outputMint"],
                        in_amount=parse_amount(hop.get("inAmount", 0)),
                        out_amount=parse_amount(hop.get("outAmount", 0)),
                        fee_amount=parse_amount(hop.get("feeAmount", 0)),
                        fee_asset=hop.get("feeMint") or hop["inputMint"],
                        percent=int(step.get("percent", 100))
                    ))
                except (KeyError, ValueError, TypeError, InvalidQuoteData) as e:
                    self.logger.debug(f"Skipping malformed route leg: {str(e)}")
        return legs
