"""
Plugin contract and the helpers the engine calls around every move/hook.

A plugin may supply any of:

    fn_wrap(fn) -> fn'            wrap a move / hook: (G, ctx, *args) -> G
    setup(game=, ctx=) -> data    initial plugin data, stored in ctx._plugins
    api(data=, ctx=) -> object    object exposed to user code as ctx.api[name]
    flush(api=) -> data           plugin data to persist after user code ran
    no_client(api=) -> bool       True when a client must not run this move
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Iterable


@dataclass(frozen=True)
class Plugin:
    name: str
    fn_wrap: Callable | None = None
    setup: Callable | None = None
    api: Callable | None = None
    flush: Callable | None = None
    no_client: Callable | None = None


def fn_wrap(fn: Callable, plugins: Iterable[Plugin]) -> Callable:
    """Compose plugin wrappers left to right; the last plugin is outermost."""
    for plugin in plugins:
        if plugin.fn_wrap is not None:
            fn = plugin.fn_wrap(fn)
    return fn


def setup(ctx, game: Any, plugins: Iterable[Plugin]):
    """Run setup hooks and store their data on ctx."""
    data = dict(ctx._plugins)
    for plugin in plugins:
        if plugin.setup is not None:
            data[plugin.name] = plugin.setup(game=game, ctx=ctx)
    return ctx._copy_with(_plugins=data)


def enhance(ctx, plugins: Iterable[Plugin]):
    """Attach each plugin's API object to ctx.api."""
    api = {}
    for plugin in plugins:
        if plugin.api is not None:
            api[plugin.name] = plugin.api(data=ctx._plugins.get(plugin.name), ctx=ctx)
    if not api:
        return ctx
    return ctx._copy_with(api=api)


def flush(ctx, plugins: Iterable[Plugin]):
    """Persist plugin data produced through the API objects."""
    data = dict(ctx._plugins)
    changed = False
    for plugin in plugins:
        if plugin.flush is not None and plugin.name in ctx.api:
            data[plugin.name] = plugin.flush(api=ctx.api[plugin.name])
            changed = True
    if not changed:
        return ctx
    return ctx._copy_with(_plugins=data)


def no_client(ctx, plugins: Iterable[Plugin]) -> bool:
    return any(
        plugin.no_client(api=ctx.api[plugin.name])
        for plugin in plugins
        if plugin.no_client is not None and plugin.name in ctx.api
    )
