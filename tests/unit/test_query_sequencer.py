import asyncio

import pytest

from tutordesk.config import Settings
from tutordesk.errors import StoreReadError
from tutordesk.services.directory_types import DirectoryPage, SortDirection, SortField
from tutordesk.services.query_sequencer import Debouncer, DirectoryController, QuerySequencer


def page_for(query, tag=""):
    return DirectoryPage(
        accounts=[], total_count=0, page=query.page, page_size=query.page_size, strategy=tag
    )


class ScriptedFetcher:
    """PageFetcher whose responses are released by the test."""

    def __init__(self):
        self.queries = []
        self.completed = []
        self.gates: list[asyncio.Future] = []

    async def __call__(self, query):
        self.queries.append(query)
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        outcome = await gate
        self.completed.append(query.search)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def controller_settings():
    return Settings(_env_file=None, search_debounce_ms=10, page_size=10)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sequencer_drops_responses_that_resolve_late():
    sequencer = QuerySequencer()
    slow_gate = asyncio.get_running_loop().create_future()

    async def slow():
        return await slow_gate

    async def fast():
        return "second"

    slow_task = asyncio.create_task(sequencer.run(slow))
    await asyncio.sleep(0)
    assert await sequencer.run(fast) == "second"

    slow_gate.set_result("first")
    assert await slow_task is None
    assert sequencer.latest == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sequencer_drops_stale_failures_and_raises_current_ones():
    sequencer = QuerySequencer()
    gate = asyncio.get_running_loop().create_future()

    async def stale():
        await gate
        raise RuntimeError("stale failure")

    async def current():
        raise RuntimeError("current failure")

    stale_task = asyncio.create_task(sequencer.run(stale))
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError, match="current failure"):
        await sequencer.run(current)

    gate.set_result(None)
    assert await stale_task is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_debouncer_runs_only_the_last_submission():
    calls = []
    debouncer = Debouncer(delay=0.01)

    for value in ("s", "sm", "smi"):
        async def callback(value=value):
            calls.append(value)

        debouncer.submit(callback)
        await asyncio.sleep(0)

    await debouncer.wait()

    assert calls == ["smi"]
    assert not debouncer.pending


@pytest.mark.unit
@pytest.mark.asyncio
async def test_controller_applies_only_latest_page(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)

    first = asyncio.create_task(controller.set_page(2))
    await asyncio.sleep(0)
    second = asyncio.create_task(controller.set_page(3))
    await asyncio.sleep(0)

    fetcher.gates[1].set_result(page_for(fetcher.queries[1], "page-3"))
    assert (await second).strategy == "page-3"
    fetcher.gates[0].set_result(page_for(fetcher.queries[0], "page-2"))
    assert await first is None

    assert controller.current_page.strategy == "page-3"
    assert controller.loading is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_controller_ignores_stale_failure(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)

    first = asyncio.create_task(controller.refresh())
    await asyncio.sleep(0)
    second = asyncio.create_task(controller.refresh())
    await asyncio.sleep(0)

    fetcher.gates[1].set_result(page_for(fetcher.queries[1], "fresh"))
    await second
    fetcher.gates[0].set_result(StoreReadError("search"))
    await first

    assert controller.error is None
    assert controller.current_page.strategy == "fresh"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_controller_keeps_current_failure(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)

    task = asyncio.create_task(controller.refresh())
    await asyncio.sleep(0)
    fetcher.gates[0].set_result(StoreReadError("count"))

    assert await task is None
    assert controller.error.code == "store_read_error"
    assert controller.loading is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_is_debounced_and_resets_page(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)
    controller.page = 4

    controller.set_search("sm")
    controller.set_search("smith")
    assert controller.page == 1

    while not fetcher.gates:
        await asyncio.sleep(0.005)
    fetcher.gates[0].set_result(page_for(fetcher.queries[0]))
    await controller.settle()

    assert len(fetcher.queries) == 1
    assert fetcher.queries[0].search == "smith"
    assert fetcher.queries[0].page == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_new_search_does_not_cancel_fired_search():
    fetcher = ScriptedFetcher()
    settings = Settings(_env_file=None, search_debounce_ms=0, page_size=10)
    controller = DirectoryController(fetcher, settings)

    async def wait_for_gates(count):
        while len(fetcher.gates) < count:
            await asyncio.sleep(0.001)

    controller.set_search("a")
    await wait_for_gates(1)
    controller.set_search("ab")
    await wait_for_gates(2)

    fetcher.gates[1].set_result(page_for(fetcher.queries[1], "ab"))
    await asyncio.sleep(0.001)
    fetcher.gates[0].set_result(page_for(fetcher.queries[0], "a"))
    await controller.settle()

    assert [q.search for q in fetcher.queries] == ["a", "ab"]
    assert fetcher.completed == ["ab", "a"]
    assert controller.current_page.strategy == "ab"
    assert controller.error is None
    assert controller.loading is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reselecting_sort_field_flips_direction(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)

    async def sort_by(field):
        task = asyncio.create_task(controller.set_sort(field))
        await asyncio.sleep(0)
        fetcher.gates[-1].set_result(page_for(fetcher.queries[-1]))
        await task
        return fetcher.queries[-1]

    controller.page = 3
    query = await sort_by("total_balance")
    assert (query.sort_field, query.sort_direction, query.page) == (
        SortField.TOTAL_BALANCE,
        SortDirection.ASC,
        1,
    )

    query = await sort_by("total_balance")
    assert query.sort_direction == SortDirection.DESC

    query = await sort_by("display_name")
    assert (query.sort_field, query.sort_direction) == (SortField.DISPLAY_NAME, SortDirection.ASC)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_filter_change_keeps_selection_unless_asked(controller_settings):
    fetcher = ScriptedFetcher()
    controller = DirectoryController(fetcher, controller_settings)
    controller.selection.toggle_page([1, 2, 3])

    async def set_status(status, **kwargs):
        task = asyncio.create_task(controller.set_status(status, **kwargs))
        await asyncio.sleep(0)
        fetcher.gates[-1].set_result(page_for(fetcher.queries[-1]))
        await task

    await set_status("paused")
    assert controller.selection.ids == [1, 2, 3]
    assert fetcher.queries[-1].status == "paused"

    await set_status("all", clear_selection=True)
    assert controller.selection.count == 0
