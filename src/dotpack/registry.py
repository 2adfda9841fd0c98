"""Package registry: load coordination, definitions and dependency joins.

Each package name moves through ``UNSEEN -> LOADING -> LOADED`` (or
``FAILED``). The first request for an unseen name starts its acquisition;
every later request while it loads joins the name's pending list, and the
list is drained in one step when the name completes. Continuations are always
scheduled on a later event loop turn, never run inline, so a caller's own
stack has unwound before any dependent runs.

Sources define themselves through a ``BoundRegistry`` handle::

    package.define_with_dependencies(
        "shop.cart",
        [".prices", "shop.util.*"],
        lambda self, prices, util: Cart(prices, util),
    )
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Callable, Coroutine, Iterable, Mapping, Sequence
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

import structlog

from dotpack.config import RegistrySettings
from dotpack.configstore import ConfigStore, as_location
from dotpack.errors import (
    DefinitionFailed,
    InvalidName,
    LocationNotFound,
    PackageNotLoaded,
    RegistryError,
)
from dotpack.fetcher import is_url
from dotpack.models.config import ExternalSpec, LocationSpec
from dotpack.models.state import LoadState
from dotpack.names import (
    components,
    derive_path,
    is_component,
    is_listing,
    is_pseudo,
    is_relative,
    is_wildcard,
    join,
    listing_directory,
    listing_for,
    parent_of,
    resolve_name,
    sibling_location,
    wildcard_prefix,
)
from dotpack.patterns import PatternTree, PatternView
from dotpack.sink import ExecSink, Sink

if TYPE_CHECKING:
    from dotpack.fetcher import Fetcher

log = structlog.get_logger()

GLOBAL_PACKAGE = "#global"

# Receives (value, None) on success or (None, error) on failure.
Continuation = Callable[[Any, "RegistryError | None"], None]


def _is_definition_function(definition: Any) -> bool:
    # Classes and other callables are exported as values, only plain
    # functions (and partials of them) are run as definitions.
    return inspect.isroutine(definition) or isinstance(definition, functools.partial)


def _settle(future: asyncio.Future[Any], value: Any, error: RegistryError | None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)


def _deliver(callback: Callable[[Any], Any]) -> Callable[[asyncio.Future[Any]], None]:
    def _on_done(future: asyncio.Future[Any]) -> None:
        if not future.cancelled() and future.exception() is None:
            callback(future.result())

    return _on_done


async def _gather_all(waits: Sequence[asyncio.Future[Any]]) -> list[Any]:
    """Wait for every future, then raise the first failure if any."""
    results = await asyncio.gather(*waits, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class Registry:
    """Process-wide map of package names to lazily loaded values."""

    def __init__(
        self,
        fetcher: Fetcher,
        sink: Sink | None = None,
        *,
        config: ConfigStore | None = None,
        settings: RegistrySettings | None = None,
    ) -> None:
        self._settings = settings or RegistrySettings()
        self._fetcher = fetcher
        self._sink: Sink = sink or ExecSink()
        self.configs = config if config is not None else ConfigStore()

        self._packages: dict[str, Any] = {}
        self._states: dict[str, LoadState] = {}
        self._pending: dict[str, list[Continuation]] = {}
        self._failures: dict[str, RegistryError] = {}
        self._aliases: dict[str, str] = {}
        self._load_order: dict[str, int] = {}
        self._next_order = 1
        self._patterns = PatternTree()
        self._joining: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()

        self._packages[GLOBAL_PACKAGE] = self._sink.global_object
        self._states[GLOBAL_PACKAGE] = LoadState.LOADED

    # ------------------------------------------------------------------
    # Names and state
    # ------------------------------------------------------------------

    def resolve(self, raw: str, parent: str | None = None) -> str:
        return resolve_name(raw, parent, self._aliases, self._settings.separator_substitute)

    def state(self, name: str) -> LoadState:
        return self._states.get(name, LoadState.UNSEEN)

    @property
    def aliases_map(self) -> dict[str, str]:
        return dict(self._aliases)

    @property
    def load_order(self) -> dict[str, int]:
        return dict(self._load_order)

    # ------------------------------------------------------------------
    # Lookup and requests
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> Any:
        """Return a loaded package (or pattern view) without loading anything."""
        target = self.resolve(name)
        if is_wildcard(target):
            view = self._patterns.view(wildcard_prefix(target))
            if view is None:
                raise PackageNotLoaded(f"No packages loaded under [{target}]")
            return view
        state = self.state(target)
        if state is LoadState.LOADED:
            return self._packages[target]
        if state is LoadState.FAILED:
            raise self._failures[target]
        raise PackageNotLoaded(f"Package [{target}] is not loaded")

    def request(
        self, name: str, callback: Callable[[Any], Any] | None = None
    ) -> asyncio.Future[Any]:
        """Ask for ``name``, loading it if needed.

        The returned future (and ``callback``, when given) is always settled on
        a later loop turn, even for an already loaded package. Wildcard names
        resolve to a dict keyed by sub-package leaf name.
        """
        target = self.resolve(name)
        if is_wildcard(target):
            future: asyncio.Future[Any] = self.expand_wildcard(target)
        else:
            future = self._await_name(target)
        if callback is not None:
            future.add_done_callback(_deliver(callback))
        return future

    async def get(self, name: str) -> Any:
        """Lookup-or-load: the value of ``name`` once it is available."""
        return await self.request(name)

    def _await_name(self, name: str) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        state = self.state(name)
        if state is LoadState.LOADED:
            loop.call_soon(_settle, future, self._packages[name], None)
        elif state is LoadState.FAILED:
            loop.call_soon(_settle, future, None, self._failures[name])
        else:
            self._pending.setdefault(name, []).append(functools.partial(_settle, future))
            if state is LoadState.UNSEEN:
                self._states[name] = LoadState.LOADING
                if not is_pseudo(name):
                    self._spawn(self._acquire(name))
        return future

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def define_value(
        self, name: str, definition: Any, *, origin: LocationSpec | None = None
    ) -> Any:
        """Define ``name`` with no dependencies and return its exported value."""
        target = self.resolve(name)
        self._adopt_origin(target, origin)
        return self._define(target, definition, [])

    def define_with_dependencies(
        self,
        name: str,
        dependencies: Sequence[str],
        definition: Any,
        *,
        origin: LocationSpec | None = None,
    ) -> asyncio.Future[Any]:
        """Define ``name`` once every dependency has been loaded.

        Dependencies are requested immediately and concurrently. The definition
        is called with the dependency values in declaration order, whatever
        order they complete in. Returns a future of the exported value.
        """
        target = self.resolve(name)
        self._adopt_origin(target, origin)
        loop = asyncio.get_running_loop()

        if not dependencies:
            future: asyncio.Future[Any] = loop.create_future()
            future.set_result(self._define(target, definition, []))
            return future

        # All names are resolved before any of them is requested.
        resolved = [self._resolve_dependency(target, dep) for dep in dependencies]
        target_config = self.configs.find(target)
        waits = [
            self._dependency(target_config, dep_target, relative)
            for dep_target, relative in resolved
        ]
        if self.state(target) is LoadState.UNSEEN:
            self._states[target] = LoadState.LOADING
        self._joining.add(target)
        return self._spawn(self._join(target, definition, waits))

    async def _join(
        self, name: str, definition: Any, waits: list[asyncio.Future[Any]]
    ) -> Any:
        try:
            values = await _gather_all(waits)
        except Exception as exc:
            reason = exc.message if isinstance(exc, RegistryError) else repr(exc)
            error = DefinitionFailed(f"Dependency of [{name}] failed: {reason}")
            self._fail(name, error)
            raise error from exc
        finally:
            self._joining.discard(name)

        try:
            return self._define(name, definition, values)
        except RegistryError as exc:
            self._fail(name, exc)
            raise
        except Exception as exc:
            error = DefinitionFailed(f"Definition of [{name}] raised: {exc!r}")
            self._fail(name, error)
            raise error from exc

    def _resolve_dependency(self, name: str, dep: str) -> tuple[str, bool]:
        if is_relative(dep):
            return self.resolve(dep, parent=parent_of(name)), True
        return self.resolve(dep), False

    def _dependency(
        self, config: LocationSpec | None, target: str, relative: bool
    ) -> asyncio.Future[Any]:
        if relative and config is not None:
            self._configure_sibling(config, target)
        if is_wildcard(target):
            return self.expand_wildcard(target)
        return self._await_name(target)

    def _configure_sibling(self, config: LocationSpec, target: str) -> None:
        # A relative dependency without its own configuration is served from
        # the same place as the package that names it.
        located = listing_for(target, self._settings.listing_name) if is_wildcard(target) else target
        if self.configs.find(located) is not None:
            return
        suffix = self._settings.source_suffix
        sibling = LocationSpec(
            path=sibling_location(config.path, located, suffix) if config.path else None,
            url=sibling_location(config.url, located, suffix) if config.url else None,
        )
        self.configs.set(located, sibling)
        log.debug("sibling_config_derived", name=located, location=sibling.dump())

    def _define(self, name: str, definition: Any, dependencies: list[Any]) -> Any:
        if _is_definition_function(definition):
            current = self._packages[name] if name in self._packages else SimpleNamespace()
            result = definition(current, *dependencies)
            value = current if result is None else result
        else:
            value = definition
        return self._complete(name, value)

    def _adopt_origin(self, name: str, origin: LocationSpec | None) -> None:
        if origin is not None and name not in self.configs:
            self.configs.set(name, origin)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _complete(self, name: str, value: Any) -> Any:
        self._packages[name] = value
        if not is_listing(name, self._settings.listing_name) and not is_pseudo(name):
            self._patterns.publish(components(name), value)
        self._states[name] = LoadState.LOADED
        self._failures.pop(name, None)
        if name not in self._load_order:
            self._load_order[name] = self._next_order
            self._next_order += 1

        log.debug("package_loaded", name=name, order=self._load_order[name])
        for continuation in self._pending.pop(name, []):
            self._schedule(continuation, value, None)
        return value

    def _fail(self, name: str, error: RegistryError) -> None:
        log.error(
            "package_load_failed",
            name=name,
            code=str(error.code),
            error=error.message,
        )
        if not self._settings.propagate_failures:
            return
        self._states[name] = LoadState.FAILED
        self._failures[name] = error
        for continuation in self._pending.pop(name, []):
            self._schedule(continuation, None, error)

    @staticmethod
    def _schedule(continuation: Continuation, value: Any, error: RegistryError | None) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Completed outside an event loop (e.g. a host defining values at
            # import time); nothing can be awaiting yet except alias joins.
            continuation(value, error)
            return
        loop.call_soon(continuation, value, error)

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def _acquire(self, name: str) -> None:
        try:
            config = self.configs.find(name)
            if config is not None and config.external is not None:
                await self._load_external(name, config.external)
                return
            location = None
            if config is not None:
                location = config.absolute_url or config.path or config.url
            if location is None:
                location = derive_path(
                    name, self._settings.root_dir, self._settings.source_suffix
                )
            await self._load_source(name, location)
        except RegistryError as exc:
            self._fail(name, exc)

    async def _load_source(self, name: str, location: str) -> None:
        try:
            source = await self._fetcher.fetch(location)
        except LocationNotFound:
            if is_listing(name, self._settings.listing_name) and not is_url(location):
                await self._synthesize_listing(name, location)
                return
            log.error(
                "package_location_not_found",
                name=name,
                location=location,
                config=self.configs.find(name),
            )
            raise
        self._run_source(name, source, location)

    def _run_source(self, name: str, source: str, location: str) -> None:
        origin = LocationSpec(url=location) if is_url(location) else LocationSpec(path=location)
        try:
            self._sink.execute(source, location, self.bind(origin), name)
        except RegistryError:
            raise
        except Exception as exc:
            raise DefinitionFailed(
                f"Package [{name}] failed to evaluate from [{location}]: {exc!r}"
            ) from exc
        if self.state(name) is LoadState.LOADING and name not in self._joining:
            log.warning("package_not_defined_by_source", name=name, location=location)

    async def _synthesize_listing(self, name: str, location: str) -> None:
        """Build a listing package from the directory its file would live in.

        Source files become leaf names (each configured with its own path),
        subdirectories are listed recursively, and the listing completes once
        every nested listing has.
        """
        listing = self._settings.listing_name
        suffix = self._settings.source_suffix
        directory = listing_directory(location, listing, suffix)
        files, dirs = await self._fetcher.list_directory(directory)
        prefix = parent_of(name)

        leaves: list[str] = []
        for filename in files:
            if not filename.endswith(suffix):
                continue
            leaf = filename[: -len(suffix)]
            if leaf == listing or not is_component(leaf):
                continue
            self.configs.set(join(prefix, leaf), LocationSpec(path=directory + filename))
            leaves.append(leaf)

        nested: list[asyncio.Future[Any]] = []
        for sub in dirs:
            if sub.startswith("__") or not is_component(sub):
                continue
            nested_name = join(join(prefix, sub), listing)
            if nested_name not in self.configs:
                self.configs.set(
                    nested_name, LocationSpec(path=f"{directory}{sub}/{listing}{suffix}")
                )
            nested.append(self._await_name(nested_name))

        log.debug("listing_synthesized", name=name, leaves=leaves, subdirs=len(nested))
        if nested:
            await _gather_all(nested)
        self._complete(name, leaves)

    async def _load_external(self, name: str, external: ExternalSpec) -> None:
        locations = external.locations()
        injections = external.injections()
        sources = [await self._fetcher.fetch(location) for location in locations]
        sink = self._sink

        def definition(this: Any, global_object: Any, *dependencies: Any) -> Any:
            module = sink.external_namespace(
                name, {symbol: value for (_, symbol), value in zip(injections, dependencies)}
            )
            for location, source in zip(locations, sources):
                sink.execute_in(module, source, location)
            if external.name:
                return getattr(module, external.name, module)
            return module

        self.define_with_dependencies(
            name, [GLOBAL_PACKAGE, *(dep for dep, _ in injections)], definition
        )

    # ------------------------------------------------------------------
    # Wildcards
    # ------------------------------------------------------------------

    def expand_wildcard(self, name: str) -> asyncio.Task[dict[str, Any]]:
        """Load every sub-package under ``prefix.*``.

        The listing package ``prefix.__listing__`` supplies the leaf names;
        the result maps each leaf to its value once all of them are loaded.
        """
        target = self.resolve(name)
        if not is_wildcard(target):
            raise InvalidName(f"[{target}] is not a wildcard name")
        return self._spawn(self._expand(target))

    async def _expand(self, wildcard: str) -> dict[str, Any]:
        prefix = wildcard_prefix(wildcard)
        leaves = await self._await_name(listing_for(wildcard, self._settings.listing_name))
        leaves = list(leaves)
        values = await _gather_all([self._await_name(join(prefix, leaf)) for leaf in leaves])
        return dict(zip(leaves, values))

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def config(self, entries: Mapping[str, Any]) -> None:
        """Set or replace location configuration entries.

        An entry carrying ``alias`` registers the alias as well.
        """
        for raw, entry in entries.items():
            name = resolve_name(raw, substitute=self._settings.separator_substitute)
            if callable(entry):
                self.configs.set(name, entry)
                continue
            spec = as_location(entry)
            if spec.external is not None:
                spec.external.locations()
                spec.external.injections()
            self.configs.set(name, spec)
            if spec.alias:
                self.define_alias(spec.alias, name)

    def aliases(self, short_to_full: Mapping[str, str]) -> None:
        for short, full in short_to_full.items():
            self.define_alias(short, full)

    def define_alias(self, short: str, full: str) -> None:
        """Make ``short`` a global alias for ``full``.

        The alias is published as a package as soon as ``full`` is loaded;
        defining it early registers a deferred join without loading ``full``.
        """
        substitute = self._settings.separator_substitute
        short = resolve_name(short, substitute=substitute)
        full = resolve_name(full, substitute=substitute)
        self._aliases[short] = full
        state = self.state(full)
        if state is LoadState.LOADED:
            self._complete(short, self._packages[full])
        elif state is LoadState.FAILED:
            self._fail(short, self._failures[full])
        else:
            self._pending.setdefault(full, []).append(
                functools.partial(self._alias_settled, short)
            )

    def _alias_settled(self, short: str, value: Any, error: RegistryError | None) -> None:
        if error is not None:
            self._fail(short, error)
        else:
            self._complete(short, value)

    def declare(self, names: Iterable[str]) -> None:
        """Mark names that will be defined by code already on its way.

        Requests for them wait instead of triggering a fetch.
        """
        for raw in names:
            name = self.resolve(raw)
            if self.state(name) is LoadState.UNSEEN:
                self._states[name] = LoadState.LOADING

    def external(
        self,
        name: str,
        url: str | list[str],
        exported_name: str | None = None,
        depends_on: Sequence[str] = (),
        dep_names: Sequence[str] | None = None,
    ) -> None:
        """Register a script that does not use the registry itself."""
        self.config(
            {
                name: {
                    "external": {
                        "url": url,
                        "name": exported_name,
                        "depends_on": list(depends_on),
                        "dep_names": list(dep_names) if dep_names is not None else None,
                    }
                }
            }
        )

    def bind(self, origin: LocationSpec | None = None) -> BoundRegistry:
        return BoundRegistry(self, origin)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._reap)
        return task

    def _reap(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, RegistryError):
            log.error("registry_task_crashed", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait until no acquisition, join or expansion is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class BoundRegistry:
    """The ``package`` handle seen by a source while it runs.

    Definitions made through it adopt the location the source was loaded
    from, unless the defined name is configured already.
    """

    def __init__(self, registry: Registry, origin: LocationSpec | None = None) -> None:
        self._registry = registry
        self.origin = origin

    def define_value(self, name: str, definition: Any) -> Any:
        return self._registry.define_value(name, definition, origin=self.origin)

    def define_with_dependencies(
        self, name: str, dependencies: Sequence[str], definition: Any
    ) -> asyncio.Future[Any]:
        return self._registry.define_with_dependencies(
            name, dependencies, definition, origin=self.origin
        )

    def lookup(self, name: str) -> Any:
        return self._registry.lookup(name)

    def request(self, name: str, callback: Callable[[Any], Any] | None = None) -> asyncio.Future[Any]:
        return self._registry.request(name, callback)

    def config(self, entries: Mapping[str, Any]) -> None:
        self._registry.config(entries)

    def aliases(self, short_to_full: Mapping[str, str]) -> None:
        self._registry.aliases(short_to_full)

    def declare(self, names: Iterable[str]) -> None:
        self._registry.declare(names)

    def external(
        self,
        name: str,
        url: str | list[str],
        exported_name: str | None = None,
        depends_on: Sequence[str] = (),
        dep_names: Sequence[str] | None = None,
    ) -> None:
        self._registry.external(name, url, exported_name, depends_on, dep_names)


__all__ = ["GLOBAL_PACKAGE", "BoundRegistry", "PatternView", "Registry"]
