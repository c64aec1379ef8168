"""
commandtree command layer: register, look up, and dispatch hierarchical commands.

What this module provides
- CommandNode: one node of a command tree. It is at the same time
  • a registry entry (owns an optional handler),
  • a trie segment (owns a Segment of case-insensitive aliases),
  • a dispatcher (matches argument tokens against its children and recurses).

- Factories and helpers:
  • command(path, parent=...): create a root node or register under a parent, usable
    as a decorator.
  • invoke(obj, prompt): convenience runner that tokenizes a raw line and dispatches.

Core ideas
- The tree is the router: dispatch descends one level per matching leading token and
  calls the handler of the deepest node reached, with the tokens not consumed yet.
- Handlers are plain callables: handler(sender, label, args) -> bool. A CommandNode is
  itself such a callable, so whole trees can be mounted as handlers of other trees.
- "Not found" is a normal outcome: lookups return None and dispatch returns False.
  Raised faults are kept for programmer errors (malformed paths, duplicates, cycles).

Quick start
    from commandtree import CommandNode, invoke

    economy = CommandNode("economy")

    @economy.command("give|g")
    def give(sender, label, args):
        print(sender, "gives", *args)
        return True

    invoke(economy, "give Steve 100", sender="console")   # -> True

Concurrency
- A single process-wide re-entrant lock serializes every mutation and traversal of any
  tree. Handlers run outside the lock.
"""
import functools
import logging
import operator
import re
import shlex
import threading
from collections.abc import Iterable

from .faults import *
from .labels import DELIMITER, SEPARATOR, Segment, segments
from .utils import *

logger = logging.getLogger(__name__)

# Guards children mappings, parent links and handlers of every node.
_lock = threading.RLock()


class NodeType(type):
    """
    Metaclass giving nodes read-only mirrored fields and stable representations.

    - every name in __introspectable__ becomes a property mirroring self._<name>.
    - __displayable__ (if set) narrows the fields shown by __repr__/__rich_repr__.
    - __typename__ is the hyphenated class name ("command-node"), used in messages.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _coerce_segment(labels):
    """
    Build the Segment of a node from constructor-style labels.

    - CommandNode(Segment("give", "g"))
    - CommandNode("give|g")
    - CommandNode("give", "g")
    """
    if len(labels) == 1 and isinstance(labels[0], Segment):
        return labels[0]
    if len(labels) == 1 and isinstance(labels[0], str):
        return Segment(*labels[0].split(DELIMITER))
    return Segment(*labels)


def _coerce_tokens(args):
    if isinstance(args, str):
        raise TypeError("args must be a sequence of string tokens, not a string")
    if not isinstance(args, Iterable):
        raise TypeError(f"args must be a sequence of string tokens, not {type(args).__name__!r}")
    args = tuple(args)
    for token in args:
        if not isinstance(token, str):
            raise TypeError(f"args must only contain strings, not {type(token).__name__!r}")
    return args


class CommandNode(metaclass=NodeType):
    """
    A node of a command tree.

    Fields
    - segment / labels / label: the node's aliases (Segment, tuple, canonical alias).
    - handler: optional callable(sender, label, args) -> bool.
    - parent: owning node, None for a root.
    - children: mapping Segment -> CommandNode (read-only copy, insertion ordered).
    - shell / fancy / colorful: runtime flags for fault reporting; Unset inherits from
      the parent (False at the root).

    Invariants
    - every non-root node is in its parent's children exactly once;
    - no two siblings share an alias (case-insensitively);
    - the tree is acyclic.

    Nodes are identity objects: they compare by identity and cannot be copied.
    """

    __introspectable__ = (
        "segment",
        "parent",
        "children",
    )

    __displayable__ = (
        "labels",
        "handler",
        "children",
    )

    def __init__(self, *labels, handler=None, parent=None, shell=Unset, fancy=Unset, colorful=Unset):
        """
        Create a node with the given aliases and optional handler.

        Parameters
        - labels: aliases, a single "a|b" string or a single Segment (at least one alias).
        - handler: callable(sender, label, args) -> bool, or None.
        - parent: node to attach under (same checks as set_parent()).
        - shell, fancy, colorful: runtime flags; Unset inherits from the parent.

        Raises
        - InvalidArgumentError / TypeError on empty or malformed labels.
        - TypeError when handler is not callable.
        - DuplicateCommandError when parent already has a child using one of the aliases.
        """
        if handler is not None and not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        self._segment = _coerce_segment(labels)
        self._handler = handler
        self._parent = None
        self._children = {}
        self._shell = shell
        self._fancy = fancy
        self._colorful = colorful
        logger.debug("created node %s", self._segment)
        if parent is not None:
            self.set_parent(parent)

    # ── identity ──────────────────────────────────────────────────────────────

    @property
    def labels(self):
        return self._segment.aliases

    @property
    def label(self):
        """The canonical (first) alias."""
        return self._segment.name

    @property
    def handler(self):
        return self._handler

    @handler.setter
    def handler(self, handler):
        if handler is not None and not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        with _lock:
            self._handler = handler

    @property
    def shell(self):
        return bool(coalesce(self._shell, self._parent.shell if self._parent is not None else False))

    @property
    def fancy(self):
        return bool(coalesce(self._fancy, self._parent.fancy if self._parent is not None else False))

    @property
    def colorful(self):
        return bool(coalesce(self._colorful, self._parent.colorful if self._parent is not None else False))

    @property
    def root(self):
        """
        Return the topmost node of the tree this node belongs to.
        """
        node = self
        while node._parent is not None:
            node = node._parent
        return node

    @property
    def path(self):
        """
        Return the ancestry from the root to this node as a tuple (root first).
        """
        path = [node := self]
        while node._parent is not None:
            path.append(node := node._parent)
        return tuple(reversed(path))

    @property
    def route(self):
        """
        Canonical labels from just below the root down to this node, space separated.

        The root's own label is not part of a route: it is what the host binds the
        whole tree to, never matched against argument tokens.
        """
        return SEPARATOR.join(node.label for node in self.path[1:])

    def __copy__(self):
        raise TypeError(f"{type(self).__typename__} cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__typename__} cannot be copied")

    def __iter__(self):
        with _lock:
            return iter(tuple(self._children.values()))

    def __len__(self):
        return len(self._children)

    def __bool__(self):
        # a leaf has no children but is still a found node
        return True

    def __contains__(self, label):
        with _lock:
            return self._lookup(label) is not None

    # ── faults ────────────────────────────────────────────────────────────────

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this node's runtime flags merged in.

        Outside shell mode the fault is raised; in shell mode it is rendered to stderr
        and None is returned so the calling operation can bail out.
        """
        trigger(fault, **({
            "node": self,
            "shell": self.shell,
            "fancy": self.fancy,
            "colorful": self.colorful,
        } | options))

    # ── linkage ───────────────────────────────────────────────────────────────

    def _detach(self):
        if self._parent is not None:
            self._parent._children.pop(self._segment)
            self._parent = None

    def _conflict(self, segment, exclude=None):
        for key, child in self._children.items():
            if child is not exclude and key.intersects(segment):
                return child
        return None

    def _duplicate(self, segment, other):
        taken = next(alias for alias in segment if alias in other._segment)
        route = SEPARATOR.join(filter(None, (self.route, taken)))
        return DuplicateCommandError(
            f"label {taken!r} is already in use by {other._segment!s}",
            title="duplicate alias",
            code=FaultCode.DUPLICATE_ALIAS,
            label=taken,
            route=route,
            hint="pick aliases that no sibling command uses",
            docs=getdoc(FaultCode.DUPLICATE_ALIAS),
        )

    def set_parent(self, parent, /):
        """
        Move this node under parent, or detach it when parent is None.

        The node is removed from its former parent before being inserted under the new
        one, so it is never a member of two children mappings. All checks run before any
        mutation.

        Raises
        - TypeError when parent is neither a CommandNode nor None.
        - InvalidOperationError when parent is this node or one of its descendants.
        - DuplicateCommandError when parent already has a child sharing an alias.
        """
        if parent is not None and not isinstance(parent, CommandNode):
            raise TypeError(f"{type(self).__typename__} parent must be a command node")

        with _lock:
            if parent is self._parent:
                return
            if parent is not None:
                if any(node is self for node in parent.path):
                    return self.trigger(InvalidOperationError(
                        f"cannot attach {self._segment!s} under itself or one of its descendants",
                        title="invalid operation",
                        code=FaultCode.INVALID_OPERATION,
                        label=self.label,
                        hint="detach the target first or choose a node outside this subtree",
                        docs=getdoc(FaultCode.INVALID_OPERATION),
                    ))
                if (other := parent._conflict(self._segment)) is not None:
                    return self.trigger(parent._duplicate(self._segment, other))

            former = self._parent
            self._detach()
            self._parent = parent
            if parent is not None:
                parent._children[self._segment] = self
            logger.debug(
                "moved %s from %r to %r",
                self._segment, former.label if former is not None else None, parent.label if parent is not None else None
            )

    def remove(self, *labels):
        """
        Detach and return the descendant found by path (see get_child()).

        Raises
        - InvalidArgumentError when no label is given.
        - NoSuchChildError when nothing matches the path.
        """
        if not labels:
            return self.trigger(InvalidArgumentError(
                "remove() needs at least one label",
                title="invalid argument",
                code=FaultCode.INVALID_ARGUMENT,
                hint="pass the labels of the path to remove",
            ))
        with _lock:
            child = self.get_child(*labels)
            if child is None:
                return self.trigger(NoSuchChildError(
                    f"no child matches {SEPARATOR.join(labels)!r}",
                    title="no such child",
                    code=FaultCode.NO_SUCH_CHILD,
                    path=labels,
                    route=self.route,
                    hint="look the node up with get_child() before removing it",
                    docs=getdoc(FaultCode.NO_SUCH_CHILD),
                ))
            child._detach()
            logger.debug("removed %s from %r", child._segment, self.label)
        return child

    def relabel(self, *labels):
        """
        Replace this node's aliases, keeping its place among its siblings.

        Raises
        - InvalidArgumentError on empty or malformed labels.
        - DuplicateCommandError when a sibling already uses one of the new aliases.
        """
        try:
            segment = _coerce_segment(labels)
        except CommandException as fault:
            return self.trigger(fault)

        with _lock:
            if (parent := self._parent) is not None:
                if (other := parent._conflict(segment, exclude=self)) is not None:
                    return self.trigger(parent._duplicate(segment, other))
                parent._children = {
                    (segment if child is self else key): child for key, child in parent._children.items()
                }
            logger.debug("relabeled %s as %s", self._segment, segment)
            self._segment = segment

    # ── registration ──────────────────────────────────────────────────────────

    def add(self, handler, path, /):
        """
        Register handler at path below this node and return the node holding it.

        Missing intermediate nodes are created without handlers. An existing child is
        reused when it shares at least one alias with the segment; aliases are never
        merged into it (extra ones are reported with IgnoredAliasesWarning).

        Parameters
        - handler: callable(sender, label, args) -> bool.
        - path: "economy give|g", or a sequence of Segments / alias strings / iterables
          of aliases.

        Raises
        - TypeError when handler is not callable or path has the wrong shape.
        - InvalidArgumentError on an empty path or a malformed segment.
        - DuplicateCommandError when the target node already has a handler.

        A failed add() leaves the tree untouched, including one that fails because an
        IgnoredAliasesWarning was escalated to an error.
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        try:
            path = segments(path)
        except CommandException as fault:
            return self.trigger(fault)

        ignored = []
        with _lock:
            node = self
            for index, segment in enumerate(path):
                if (child := node._conflict(segment)) is None:
                    break
                if extra := [alias for alias in segment if alias not in child._segment]:
                    ignored.append((child, extra))
                node = child
            else:
                if node._handler is not None:
                    taken = next(alias for alias in path[-1] if alias in node._segment)
                    return self.trigger(DuplicateCommandError(
                        f"cannot have two commands with the label {taken!r}",
                        title="duplicate command",
                        code=FaultCode.DUPLICATE_COMMAND,
                        label=taken,
                        route=node.route,
                        hint="remove the existing command first or register under another path",
                        docs=getdoc(FaultCode.DUPLICATE_COMMAND),
                    ))
                index = len(path)

            # warnings are surfaced before the first mutation; a host escalating them
            # to errors gets an untouched tree
            for child, extra in ignored:
                self.trigger(IgnoredAliasesWarning(
                    f"aliases {", ".join(map(repr, extra))} were not added to {child._segment!s}",
                    title="ignored aliases",
                    code=FaultCode.IGNORED_ALIASES,
                    label=child.label,
                    route=child.route,
                    hint="use relabel() to change the aliases of an existing command",
                ))

            for segment in path[index:]:
                child = CommandNode(segment)
                child._parent = node
                node._children[segment] = child
                node = child
            node._handler = handler
            logger.debug("registered %r at %r", getattr(handler, "__qualname__", handler), node.route)
        return node

    def command(self, path=Unset, /):
        """
        Decorator form of add(): register the decorated handler under this node.

        @economy.command("give|g")
        def give(sender, label, args): ...

        The decorated name is bound to the node holding the handler; nodes are callable
        with the handler signature, so give(sender, label, args) still works.
        """
        return command(path, parent=self)

    # ── lookup ────────────────────────────────────────────────────────────────

    def _lookup(self, label):
        for segment, child in self._children.items():
            if segment.matches(label):
                return child
        return None

    def _search(self, label):
        if (child := self._lookup(label)) is not None:
            return child
        for child in self._children.values():
            if (found := child._search(label)) is not None:
                return found
        return None

    def get_child(self, *labels, deep=False):
        """
        Look up a descendant; all comparisons are case-insensitive.

        Modes
        - get_child("give"): immediate children only.
        - get_child("economy", "give"): one level per label, exact match at each level.
        - get_child("give", deep=True): immediate children first, then every child's
          subtree in pre-order; the first match anywhere below wins.

        Returns None when nothing matches (including paths longer than the tree).

        Raises
        - InvalidArgumentError when no label is given, or deep=True with several labels.
        - TypeError when a label is not a string.
        """
        if not labels:
            return self.trigger(InvalidArgumentError(
                "get_child() needs at least one label",
                title="invalid argument",
                code=FaultCode.INVALID_ARGUMENT,
                hint="pass the labels of the path to look up",
            ))
        for label in labels:
            if not isinstance(label, str):
                raise TypeError(f"label must be a string, not {type(label).__name__!r}")

        with _lock:
            if deep:
                if len(labels) != 1:
                    return self.trigger(InvalidArgumentError(
                        "deep search takes exactly one label",
                        title="invalid argument",
                        code=FaultCode.INVALID_ARGUMENT,
                        hint="use a path lookup to match several levels",
                    ))
                return self._search(labels[0])

            node = self
            for label in labels:
                if (node := node._lookup(label)) is None:
                    return None
            return node

    def find(self, structure, /):
        """
        Path lookup from a space separated string: find("economy give").
        """
        if not isinstance(structure, str):
            raise TypeError("find() argument must be a string")
        return self.get_child(*structure.split())

    def walk(self):
        """
        Iterate over this node and all its descendants in pre-order.

        The traversal is snapshotted under the tree lock; later changes are not seen.
        """
        def collect(node, nodes):
            nodes.append(node)
            for child in node._children.values():
                collect(child, nodes)
            return nodes

        with _lock:
            return iter(collect(self, []))

    # ── dispatch ──────────────────────────────────────────────────────────────

    def _resolve(self, label, args):
        if args and (child := self._lookup(args[0])) is not None:
            return child._resolve(args[0], args[1:])
        return self, label, args

    def resolve(self, label, args, /):
        """
        Descend as dispatch() would, without calling any handler.

        Returns (node, label, args): the deepest node reached, the label it was matched
        with (the given label when nothing matched) and the unconsumed tokens.
        """
        if not isinstance(label, str):
            raise TypeError(f"label must be a string, not {type(label).__name__!r}")
        args = _coerce_tokens(args)
        with _lock:
            return self._resolve(label, args)

    def dispatch(self, sender, label, args, /):
        """
        Route (label, args) to the most specific handler and return its result.

        While the next token names a child, descend into it; that token becomes the
        label and is dropped from the arguments. The handler of the node where descent
        stops is called as handler(sender, label, args). A node without handler makes
        the dispatch return False; nothing is raised for unknown commands.
        """
        if not isinstance(label, str):
            raise TypeError(f"label must be a string, not {type(label).__name__!r}")
        args = _coerce_tokens(args)
        with _lock:
            node, label, args = self._resolve(label, args)
            handler = node._handler

        if handler is None:
            logger.debug("no handler for %r at %r (args=%r)", label, node.route, args)
            return False
        logger.debug("dispatching %r at %r (args=%r)", label, node.route, args)
        return bool(handler(sender, label, args))

    def __call__(self, sender, label, args, /):
        return self.dispatch(sender, label, args)

    def __invoke__(self, prompt, /, sender=None):
        """
        Dispatch a raw command line (or pre-split tokens) against this node.

        - str: split with shlex.split (shell-like quoting).
        - Iterable[str]: tokens are stripped; empty ones are dropped.
        """
        if isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            def _sanitized(iterable):
                for item in iterable:
                    if not isinstance(item, str):
                        raise TypeError("__invoke__() argument must be a string or an iterable of strings")
                    if item := item.strip():
                        yield item
            tokens = list(_sanitized(prompt))
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        return self.dispatch(sender, self.label, tokens)


def command(path=Unset, /, parent=Unset):
    """
    Return a decorator that turns a handler into a command node.

    Modes
    - Root:
        @command("economy|eco")
        def economy(sender, label, args): ...
      creates a new root node holding the handler (path must be a single segment).

    - Registration:
        @command("give|g", parent=economy)
        def give(sender, label, args): ...
      registers the handler under parent (same as parent.add(handler, path)).

    When path is Unset the handler's __name__ is used.
    """
    if parent is not Unset and not isinstance(parent, CommandNode):
        raise TypeError("command() 'parent' must be a command node")

    @rename("command")
    def wrapper(handler, /):
        if not callable(handler):
            raise TypeError("@command() must be applied to a callable")
        target = coalesce(path, getattr(handler, "__name__", Unset))
        if target is Unset:
            raise TypeError("@command() needs a path for handlers without a __name__")
        if parent is Unset:
            segment, *rest = segments(target)
            if rest:
                raise InvalidArgumentError(
                    "a root command takes a single path segment",
                    title="invalid argument",
                    code=FaultCode.INVALID_ARGUMENT,
                    hint="pass parent=... to register nested commands",
                )
            return CommandNode(segment, handler=handler)
        return parent.add(handler, target)

    return wrapper


def invoke(object, prompt, /, sender=None):
    """
    Convenience runner for nodes or plain handlers.

    - object with __invoke__ (a CommandNode): tokenize prompt and dispatch.
    - plain callable: wrapped into a root node named after it, then invoked.

    Returns the dispatch result (bool).
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt, sender=sender)
    if callable(object):
        return invoke(command()(object), prompt, sender=sender)
    raise TypeError("invoke() first argument must implement __invoke__ method") from None


__all__ = (
    "CommandNode",
    "command",
    "invoke",
)

# Keep the metaclass out of star-imports and docs; not part of the public API.
del NodeType
