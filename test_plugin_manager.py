"""
Tests for plugin installation, registration and storage.
"""

import asyncio

from modules.launcher.main import LauncherState
from modules.launcher.protocol import OnInit, OnQuery
from services import MemoryStorage


def notified(shell):
    return [line for line in shell.command_lines if line.startswith("notify-send")]


def test_register_installs_initializes_and_asks_for_prefixes(make_launcher, shell, storage, output):
    def foo(command):
        if command["type"] == "onInit":
            return output(
                {"type": "registerOptions", "value": [{"title": "Foo"}]},
                {"type": "setStorage", "value": {"a": 1}},
            )
        if command["query"] == "":
            return output({"type": "registerPrefixes", "value": "f "})
        return ""

    shell.responses["foo"] = foo
    launcher = make_launcher()

    async def scenario():
        await launcher.start()
        assert await launcher.register_plugin("foo")
        # Registering twice is a no-op
        assert not await launcher.register_plugin("foo")
        return await storage.get_item("settings")

    settings = asyncio.run(scenario())

    assert [line for line in shell.command_lines if "pipx install" in line] == ["pipx install foo"]
    assert shell.invocations == [
        ("foo", {"type": "onInit", "storage": {}}),
        ("foo", {"type": "onQuery", "query": "", "storage": {"a": 1}}),
    ]
    manager = launcher.plugin_manager
    assert manager.registered_prefixes() == {"foo": ["f "]}
    assert [o.title for o in manager.registered_options()["foo"]] == ["Foo"]
    assert settings["plugins"] == ["foo"]


def test_register_local_path_skips_installer(make_launcher, shell):
    launcher = make_launcher()

    async def scenario():
        await launcher.start()
        return await launcher.register_plugin("/opt/plugins/local.py")

    assert asyncio.run(scenario())

    assert not any("pipx install" in line for line in shell.command_lines)
    assert [p for p, c in shell.invocations] == ["/opt/plugins/local.py", "/opt/plugins/local.py"]
    assert any(line.startswith("python3 /opt/plugins/local.py ") for line in shell.command_lines)


def test_failed_install_alerts_and_registers_nothing(make_launcher, shell):
    shell.failures["pipx install bad"] = "no matching distribution"
    launcher = make_launcher()

    async def scenario():
        await launcher.start()
        return await launcher.register_plugin("bad")

    assert not asyncio.run(scenario())

    assert launcher.settings.plugins == []
    assert shell.invocations == []
    assert notified(shell) == [
        "notify-send -a Spotter 'Failed to install bad' 'no matching distribution'"
    ]


def test_unregister_clears_registrations_and_hotkeys(make_launcher, shell, installed, output):
    installed("foo", hotkeys={"foo": {"Foo": "ctrl+f"}})
    shell.responses["foo"] = lambda command: output(
        {"type": "registerOptions", "value": [{"title": "Foo"}]},
        {"type": "registerPrefixes", "value": ["f "]},
    )
    launcher = make_launcher()

    async def scenario():
        await launcher.start()
        assert "foo#Foo" in launcher.hotkeys.bindings
        await launcher.on_query("foo")
        assert launcher.state == LauncherState.QUERYING

        assert await launcher.unregister_plugin("foo")
        assert not await launcher.unregister_plugin("foo")

    asyncio.run(scenario())

    manager = launcher.plugin_manager
    assert "pipx uninstall foo" in shell.command_lines
    assert manager.registered_options() == {}
    assert manager.registered_prefixes() == {}
    assert launcher.settings.plugins == []
    assert launcher.settings.plugin_hotkeys == {}
    assert "foo#Foo" not in launcher.hotkeys.bindings
    assert launcher.state == LauncherState.IDLE


def test_failed_uninstall_keeps_plugin(make_launcher, shell, installed):
    installed("foo")
    shell.failures["pipx uninstall foo"] = "permission denied"
    launcher = make_launcher()

    async def scenario():
        await launcher.start()
        return await launcher.unregister_plugin("foo")

    assert not asyncio.run(scenario())

    assert launcher.settings.plugins == ["foo"]
    assert notified(shell) == ["notify-send -a Spotter 'Failed to remove foo' 'permission denied'"]


def test_storage_patch_is_merged(make_launcher, shell, storage, output):
    asyncio.run(storage.set_item("storage:foo", {"a": 1, "b": 1}))
    shell.responses["foo"] = output({"type": "setStorage", "value": {"b": 2}})
    manager = make_launcher().plugin_manager

    async def scenario():
        await manager.run("foo", lambda s: OnInit(storage=s))
        return await storage.get_item("storage:foo")

    assert asyncio.run(scenario()) == {"a": 1, "b": 2}
    assert shell.invocations[0][1]["storage"] == {"a": 1, "b": 1}


def test_unreadable_storage_is_empty(make_launcher):
    class BrokenStorage(MemoryStorage):
        async def get_item(self, key):
            raise OSError("disk on fire")

    manager = make_launcher().plugin_manager

    async def scenario():
        manager.storage = MemoryStorage({"storage:foo": ["not", "a", "dict"]})
        malformed = await manager.read_storage("foo")
        manager.storage = BrokenStorage()
        broken = await manager.read_storage("foo")
        return malformed, broken

    assert asyncio.run(scenario()) == ({}, {})


def test_requests_to_one_plugin_are_serialized(make_launcher, shell):
    shell.delays["foo"] = 0.05
    manager = make_launcher().plugin_manager

    async def scenario():
        first = asyncio.ensure_future(manager.run("foo", lambda s: OnQuery(query="one", storage=s)))
        second = asyncio.ensure_future(manager.run("foo", lambda s: OnQuery(query="two", storage=s)))
        other = asyncio.ensure_future(manager.run("bar", lambda s: OnQuery(query="three", storage=s)))
        await asyncio.sleep(0.02)
        in_flight = [p for p, c in shell.invocations]
        await asyncio.gather(first, second, other)
        return in_flight

    assert asyncio.run(scenario()) == ["foo", "bar"]
    assert shell.queries_to("foo") == ["one", "two"]


def test_bootstrap_plugins_install_on_first_run_only(make_launcher, shell):
    def start():
        launcher = make_launcher()
        launcher.config["bootstrap_plugins"] = ["foo", "/opt/local.py"]
        asyncio.run(launcher.start())
        return launcher

    first = start()
    second = start()

    assert first.settings.plugins == ["foo", "/opt/local.py"]
    assert second.settings.plugins == ["foo", "/opt/local.py"]
    assert [line for line in shell.command_lines if "pipx install" in line] == ["pipx install foo"]
    assert [p for p, c in shell.invocations if c["type"] == "onInit"] == [
        "foo",
        "/opt/local.py",
        "foo",
        "/opt/local.py",
    ]


def test_missing_runtime_is_installed(make_launcher, shell):
    shell.failures["pipx --version"] = "pipx: not found"
    launcher = make_launcher()

    asyncio.run(launcher.start())

    assert "python3 -m pip install --user pipx" in shell.command_lines
    assert notified(shell) == []


def test_runtime_install_failure_alerts(make_launcher, shell):
    shell.failures["pipx --version"] = "pipx: not found"
    shell.failures["pip install --user pipx"] = "externally managed"
    launcher = make_launcher()

    asyncio.run(launcher.start())

    assert notified(shell) == [
        "notify-send -a Spotter 'Failed to install plugin runtime' 'externally managed'"
    ]
    assert launcher.waiting_for is None
