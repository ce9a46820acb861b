import asyncio
import logging

from holdem.managers.timer import TimerRegistry


class TestTimerRegistry:
    """Named, cancel-and-replace session timers."""

    async def test_schedule_fires_once(self):
        timers = TimerRegistry('T1')
        fired = []

        async def cb():
            fired.append(1)

        timers.schedule('x', 0.01, cb)
        await asyncio.sleep(0.05)
        assert fired == [1]
        assert 'x' not in timers.keys()

    async def test_cancel_prevents_callback(self):
        timers = TimerRegistry('T2')
        fired = []

        async def cb():
            fired.append(1)

        timers.schedule('x', 0.02, cb)
        assert timers.cancel('x') is True
        await asyncio.sleep(0.05)
        assert fired == []
        assert timers.cancel('x') is False

    async def test_rescheduling_replaces(self):
        timers = TimerRegistry('T3')
        fired = []

        async def first():
            fired.append('first')

        async def second():
            fired.append('second')

        timers.schedule('x', 0.02, first)
        timers.schedule('x', 0.02, second)
        await asyncio.sleep(0.06)
        assert fired == ['second']

    async def test_interval_stops_when_callback_returns_false(self):
        timers = TimerRegistry('T4')
        ticks = []

        async def tick():
            ticks.append(1)
            return len(ticks) < 3

        timers.start_interval('round', 0.005, tick)
        await asyncio.sleep(0.1)
        assert len(ticks) == 3
        assert not timers.is_active('round')

    async def test_cancel_prefix(self):
        timers = TimerRegistry('T5')

        async def cb():
            pass

        timers.schedule('bot:a', 10, cb)
        timers.schedule('bot:b', 10, cb)
        timers.schedule('round', 10, cb)
        timers.cancel_prefix('bot:')
        assert timers.keys() == ['round']
        timers.cancel_all()
        assert timers.keys() == []

    async def test_callback_error_is_logged(self, caplog):
        timers = TimerRegistry('T6')

        async def boom():
            raise RuntimeError('boom')

        with caplog.at_level(logging.ERROR):
            timers.schedule('x', 0, boom)
            await asyncio.sleep(0.02)
        assert 'timer-error' in caplog.text
        assert 'x' not in timers.keys()

    async def test_task_may_cancel_its_own_key(self):
        timers = TimerRegistry('T7')
        done = []

        async def cb():
            timers.cancel('x')
            await asyncio.sleep(0)
            done.append(1)

        timers.schedule('x', 0, cb)
        await asyncio.sleep(0.02)
        assert done == [1]
