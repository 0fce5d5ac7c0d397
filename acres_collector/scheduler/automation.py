"""
Automation scheduler

Runs an external interaction agent on a fixed interval so the page keeps
loading new comps. How the agent interacts with the page is its own concern;
this module only owns start/stop, the interval and the county rotation.
"""
import random
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.counties import TARGET_COUNTIES, County
from ..errors import AutomationPermissionError

logger = structlog.get_logger(__name__)

JOB_ID = "acres_interaction"


class AutomationStatus(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class InteractionAgent(ABC):
    """Capability implemented by whatever drives the page."""

    async def check_access(self) -> None:
        """Raise AutomationPermissionError if the page cannot be driven."""

    @abstractmethod
    async def attempt_interaction(self) -> str:
        """Try one interaction and describe what happened."""

    async def focus_county(self, county: County) -> bool:
        """Move the map to a county; False if the agent could not."""
        return False


class AutomationScheduler:
    """
    Fixed-interval driver for an InteractionAgent.

    Each tick optionally refocuses the map on the next target county
    (Fresno -> Kern -> Tulare -> Kings) and then attempts one interaction.
    """

    def __init__(
        self,
        agent: Optional[InteractionAgent] = None,
        interval_seconds: float = 1.5,
        refocus_probability: float = 0.15,
        counties: Sequence[County] = TARGET_COUNTIES,
        rng: Optional[random.Random] = None
    ):
        self.agent = agent
        self.interval_seconds = interval_seconds
        self.refocus_probability = refocus_probability
        self.counties: List[County] = list(counties)
        self.rng = rng or random.Random()

        self.status = AutomationStatus.STOPPED
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.ticks = 0
        self._county_index = 0

    @property
    def enabled(self) -> bool:
        return self.status == AutomationStatus.RUNNING

    async def start(self) -> bool:
        """Start the interval job. Returns False if already running or not permitted."""
        if self.enabled:
            logger.info("Automation already running")
            return False
        if self.agent is None:
            logger.warning("No interaction agent configured, automation not started")
            return False

        try:
            await self.agent.check_access()
        except AutomationPermissionError as e:
            logger.error("Error starting automation", error=str(e))
            return False

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Acres map interaction",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        self.status = AutomationStatus.RUNNING
        logger.info("Starting automation", interval_seconds=self.interval_seconds)
        return True

    def stop(self) -> bool:
        """Stop the interval job. Returns False if it was not running."""
        if not self.enabled:
            logger.info("Automation not running")
            return False

        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        self.status = AutomationStatus.STOPPED
        logger.info("Stopping automation", ticks=self.ticks)
        return True

    def next_county(self) -> County:
        county = self.counties[self._county_index % len(self.counties)]
        self._county_index = (self._county_index + 1) % len(self.counties)
        return county

    async def run_once(self) -> Optional[str]:
        """One tick: maybe refocus, then interact. Permission loss stops automation."""
        if self.agent is None:
            return None
        self.ticks += 1

        try:
            if self.counties and self.rng.random() < self.refocus_probability:
                county = self.next_county()
                focused = await self.agent.focus_county(county)
                logger.info("Refocusing map on next target county",
                            county=county.name,
                            focused=focused)

            outcome = await self.agent.attempt_interaction()
            logger.debug("Map interaction result", outcome=outcome)
            return outcome

        except AutomationPermissionError as e:
            logger.error("Permission error, stopping automation", error=str(e))
            self.stop()
            return None
        except Exception as e:
            # A failed interaction is retried on the next tick
            logger.error("Error executing interaction", error=str(e), error_type=type(e).__name__)
            return None
