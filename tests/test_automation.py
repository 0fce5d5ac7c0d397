"""Tests for the automation scheduler."""

import random

from acres_collector.config import TARGET_COUNTIES
from acres_collector.errors import AutomationPermissionError
from acres_collector.scheduler import AutomationScheduler, AutomationStatus

from factories import FakeAgent


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__()
        self.value = value

    def random(self):
        return self.value


class TestStartStop:

    async def test_start_and_stop(self):
        automation = AutomationScheduler(FakeAgent(), interval_seconds=60)

        assert await automation.start() is True
        assert automation.enabled
        assert automation.scheduler.get_job("acres_interaction") is not None

        assert automation.stop() is True
        assert automation.status is AutomationStatus.STOPPED
        assert automation.scheduler is None

    async def test_start_twice_is_a_no_op(self):
        automation = AutomationScheduler(FakeAgent(), interval_seconds=60)
        await automation.start()
        scheduler = automation.scheduler

        assert await automation.start() is False
        assert automation.scheduler is scheduler
        automation.stop()

    def test_stop_when_not_running(self):
        assert AutomationScheduler(FakeAgent()).stop() is False

    async def test_no_agent_does_not_start(self):
        automation = AutomationScheduler()
        assert await automation.start() is False
        assert not automation.enabled

    async def test_access_denied_does_not_start(self):
        agent = FakeAgent(access_error=AutomationPermissionError("Cannot access contents of the page"))
        automation = AutomationScheduler(agent, interval_seconds=60)

        assert await automation.start() is False
        assert automation.scheduler is None


class TestRunOnce:

    async def test_interacts_without_refocus(self):
        agent = FakeAgent()
        automation = AutomationScheduler(agent, rng=FixedRandom(0.9))

        assert await automation.run_once() == "Clicked on map feature"
        assert agent.interactions == 1
        assert agent.focused == []

    async def test_refocus_rotates_through_counties(self):
        agent = FakeAgent()
        automation = AutomationScheduler(agent, rng=FixedRandom(0.0))

        for _ in range(5):
            await automation.run_once()

        assert agent.focused == ["Fresno", "Kern", "Tulare", "Kings", "Fresno"]
        assert agent.interactions == 5

    def test_rotation_order(self):
        automation = AutomationScheduler(FakeAgent())
        assert [automation.next_county().fips for _ in TARGET_COUNTIES] == [
            "06019", "06029", "06107", "06031",
        ]

    async def test_interaction_error_keeps_running(self):
        agent = FakeAgent(error=RuntimeError("No features found on map"))
        automation = AutomationScheduler(agent, interval_seconds=60, rng=FixedRandom(0.9))
        await automation.start()

        assert await automation.run_once() is None
        assert automation.enabled
        automation.stop()

    async def test_permission_error_stops_automation(self):
        agent = FakeAgent(error=AutomationPermissionError("Cannot access a chrome:// URL"))
        automation = AutomationScheduler(agent, interval_seconds=60, rng=FixedRandom(0.9))
        await automation.start()

        assert await automation.run_once() is None
        assert not automation.enabled
        assert automation.scheduler is None
