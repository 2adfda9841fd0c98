"""Synchronous package registry emitted at the top of every bundle.

This module is copied verbatim into bundles, so it must not import dotpack
or anything outside the standard library. It accepts the same calls package
sources make on their ``package`` handle; a definition runs as soon as all of
its dependencies are defined, and ``finish()`` settles whatever is left.
"""

import builtins
import functools
import inspect
import types


class BundleError(Exception):
    pass


class BundledPackages:
    def __init__(self, global_object=builtins, listing_name="__listing__"):
        self._packages = {"#global": global_object}
        self._aliases = {}
        self._deferred = []
        self._listing = listing_name

    def _resolve(self, name, parent=None):
        name = name.replace("-", "_")
        if name.startswith("."):
            if not parent:
                raise BundleError("Relative package name [%s] without a parent" % name)
            name = parent + name
        return self._aliases.get(name, name)

    def _children(self, prefix):
        # Nested view of everything under prefix; a defined package shadows
        # the view of its own sub-packages.
        start = prefix + "." if prefix else ""
        tree = {}
        for key, value in self._packages.items():
            if key.startswith("#") or not key.startswith(start):
                continue
            parts = key[len(start):].split(".")
            if parts[-1] == self._listing:
                continue
            node = tree
            for part in parts[:-1]:
                node = node.setdefault(part, [False, None, {}])[2]
            entry = node.setdefault(parts[-1], [False, None, {}])
            entry[0] = True
            entry[1] = value
        return self._render(tree)

    def _render(self, tree):
        view = {}
        for key, (defined, value, children) in tree.items():
            view[key] = value if defined else self._render(children)
        return view

    def _wildcard(self, name, final):
        prefix = "" if name == "*" else name[:-2]
        listing = prefix + "." + self._listing if prefix else self._listing
        if listing in self._packages:
            leaves = list(self._packages[listing])
            names = [prefix + "." + leaf if prefix else leaf for leaf in leaves]
            if not all(n in self._packages for n in names):
                return False, None
            return True, {leaf: self._packages[n] for leaf, n in zip(leaves, names)}
        if not final:
            return False, None
        return True, self._children(prefix)

    def _collect(self, name, dependencies, final):
        parent = name.rpartition(".")[0] if name else None
        values = []
        for dep in dependencies:
            target = self._resolve(dep, parent)
            if target == "*" or target.endswith(".*"):
                ready, value = self._wildcard(target, final)
                if not ready:
                    return None
                values.append(value)
            elif target in self._packages:
                values.append(self._packages[target])
            else:
                return None
        return values

    def _store(self, name, definition, values):
        if inspect.isroutine(definition) or isinstance(definition, functools.partial):
            current = self._packages.get(name)
            if current is None:
                current = types.SimpleNamespace()
            result = definition(current, *values)
            value = current if result is None else result
        else:
            value = definition
        self._packages[name] = value
        return value

    def _flush(self, final=False):
        progress = True
        while progress:
            progress = False
            for entry in list(self._deferred):
                name, dependencies, action = entry
                values = self._collect(name, dependencies, final)
                if values is None:
                    continue
                self._deferred.remove(entry)
                if name is None:
                    action(values[0])
                else:
                    self._store(name, action, values)
                progress = True

    def define_value(self, name, definition):
        value = self._store(self._resolve(name), definition, [])
        self._flush()
        return value

    def define_with_dependencies(self, name, dependencies, definition):
        self._deferred.append((self._resolve(name), list(dependencies), definition))
        self._flush()

    def request(self, name, callback=None):
        self._deferred.append((None, [name], callback or (lambda value: None)))
        self._flush()

    def lookup(self, name):
        target = self._resolve(name)
        if target == "*" or target.endswith(".*"):
            return self._children("" if target == "*" else target[:-2])
        try:
            return self._packages[target]
        except KeyError:
            raise BundleError("Package [%s] is not defined in this bundle" % target) from None

    def config(self, entries):
        for name, entry in entries.items():
            alias = entry.get("alias") if isinstance(entry, dict) else None
            if alias:
                self._aliases[alias] = name

    def aliases(self, short_to_full):
        self._aliases.update(short_to_full)

    def declare(self, names):
        pass

    def external(self, name, url, exported_name=None, depends_on=(), dep_names=None):
        pass

    def finish(self):
        self._flush(final=True)
        if self._deferred:
            missing = sorted(name or "<request>" for name, _, _ in self._deferred)
            raise BundleError("Unresolved packages in bundle: %s" % ", ".join(missing))
