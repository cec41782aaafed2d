"""Concurrent per-platform calls with per-platform failure capture."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping

from leadsync.schemas.social_media import PlatformFailure, SocialPlatform

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    ok: Dict[SocialPlatform, Any] = field(default_factory=dict)
    failed: List[PlatformFailure] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


async def fan_out(
    clients: Mapping[SocialPlatform, Any],
    operation: Callable[[Any], Awaitable[Any]],
    description: str = "request",
) -> FanOutResult:
    """
    Run `operation` against every client concurrently.

    One platform failing never affects the others: its exception is logged
    and recorded as a PlatformFailure. Cancellation still propagates.
    """
    platforms = list(clients)
    outcomes = await asyncio.gather(
        *(operation(clients[platform]) for platform in platforms),
        return_exceptions=True,
    )

    result = FanOutResult()
    for platform, outcome in zip(platforms, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"❌ {description} failed on {platform.value}: {outcome}")
            result.failed.append(PlatformFailure.from_exception(platform, outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.ok[platform] = outcome

    return result
