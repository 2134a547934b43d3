"""
Tests for filtering, merging and ordering options.
"""

import asyncio
import json

from modules.launcher.history import History, history_key
from modules.launcher.option import Option
from modules.launcher.protocol import decode_output
from modules.launcher.ranking import filter_registered, force_replace, rank
from services import MemoryStorage


def titles(options):
    return [o.title for o in options]


REGISTERED = {
    "apps": [Option("Calculator", "apps"), Option("Calendar", "apps"), Option("Terminal", "apps")],
    "web": [Option("Search CALendars online", "web")],
}


def test_filter_is_case_insensitive_substring():
    assert titles(filter_registered("cal", REGISTERED)) == [
        "Calculator",
        "Calendar",
        "Search CALendars online",
    ]
    assert titles(filter_registered("calc", REGISTERED)) == ["Calculator"]
    assert filter_registered("zzz", REGISTERED) == []
    assert filter_registered("", REGISTERED) == []


def test_force_replace_swaps_in_place_and_appends():
    old = Option("Foo", "p", subtitle="old", action="x")
    current = [Option("Static", "apps"), old]
    fresh = [Option("Foo", "p", subtitle="new", action="x"), Option("Bar", "p")]

    merged = force_replace(current, fresh)

    assert titles(merged) == ["Static", "Foo", "Bar"]
    assert merged[1].subtitle == "new"


def test_force_replace_is_idempotent():
    current = [Option("Static", "apps")]
    fresh = [Option("Foo", "p"), Option("Foo", "p"), Option("Bar", "p")]

    once = force_replace(current, fresh)
    twice = force_replace(once, fresh)

    assert once == twice
    assert len({o.identity for o in twice}) == len(twice)


def test_identity_includes_plugin_and_action():
    merged = force_replace([Option("Open", "a", action="1")], [Option("Open", "b", action="1"), Option("Open", "a", action="2")])

    assert len(merged) == 3


def test_rank_orders_by_usage_then_arrival():
    history = History(MemoryStorage())
    unused, used_five, used_two = Option("Zero", "p"), Option("Five", "p"), Option("Two", "p")

    async def use():
        for _ in range(5):
            await history.increment(used_five)
        for _ in range(2):
            await history.increment(used_two)

    asyncio.run(use())

    assert titles(rank([unused, used_two, used_five], history)) == ["Five", "Two", "Zero"]
    assert titles(rank([Option("B", "p"), Option("A", "p")], history)) == ["B", "A"]


def test_rank_is_scoped_by_anchor():
    history = History(MemoryStorage())
    anchor = Option("Music", "spotify", query_action="music")
    song = Option("Song", "spotify", action="play")

    asyncio.run(history.increment(song, anchor))

    assert history.count(song, anchor) == 1
    assert history.count(song) == 0
    assert history_key(song, anchor) != history_key(song)


def test_history_persists_and_reloads():
    storage = MemoryStorage()
    option = Option("Five", "p", action="go")

    async def scenario():
        history = History(storage)
        await history.increment(option)
        await history.increment(option)

        reloaded = History(storage)
        await reloaded.load()
        return reloaded.count(option)

    assert asyncio.run(scenario()) == 2


def test_decoded_option_history_survives_reload():
    storage = MemoryStorage()
    option = decode_output("foo", json.dumps({"type": "setOptions", "value": [{"title": "T", "action": "7"}]}))[0].value[0]

    async def scenario():
        history = History(storage)
        await history.increment(option)

        reloaded = History(storage)
        await reloaded.load()
        return history.count(option), reloaded.count(option)

    assert asyncio.run(scenario()) == (1, 1)
