"""
Plugin Hook Specifications and Pipeline

This module defines the document lifecycle hooks plugins can subscribe to and
the pipeline that dispatches them. Subscriptions are held by a pluggy plugin
manager; dispatch is performed here, one subscriber at a time, so a failing
subscriber is isolated from its neighbours.

Two invocation modes are offered:

- ``collect``: every subscriber's result, in subscription order
- ``fold``: each subscriber transforms the running value left by the previous one
"""

import itertools
import logging
import re
import types
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Type, Union

import pluggy

from blockpress.core.exceptions import HookCallbackFailure

PROJECT_NAME = "blockpress"

# Create hook specification markers
hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)

# Core hook names
BEFORE_SAVE = "before_save"
AFTER_SAVE = "after_save"
BEFORE_RENDER = "before_render"
ELEMENT_RENDER = "element_render"
ELEMENT_CONTROLS = "element_controls"

_HOOK_NAME = re.compile(r"^[a-z][a-z0-9_]*$")


class DocumentHooks:
    """Hook specifications for document lifecycle events."""

    @hookspec
    def before_save(self, tree, document_id: str):
        """Transform a content tree before it is appended as a revision.

        Folded: each subscriber receives the tree returned by the previous one.

        Args:
            tree: ContentTree about to be saved (a private copy)
            document_id: Identifier of the document being saved

        Returns:
            The ContentTree to pass on
        """

    @hookspec
    def after_save(self, revision):
        """Notification that a revision was appended.

        Args:
            revision: The persisted Revision
        """

    @hookspec
    def before_render(self, tree):
        """Notification that a tree is about to be rendered.

        Args:
            tree: ContentTree being rendered (a private copy)
        """

    @hookspec
    def element_render(self, properties: Dict[str, Any], node):
        """Transform the properties passed downstream for one element.

        Folded, seeded with the element's properties over its block defaults.

        Args:
            properties: Property bag produced so far
            node: Copy of the ElementNode being rendered

        Returns:
            The property bag to pass on
        """

    @hookspec
    def element_controls(self, node, definition):
        """Contribute editing controls for the selected element.

        Args:
            node: Copy of the selected ElementNode
            definition: BlockDefinition of the element

        Returns:
            A control descriptor or a list of them
        """


@dataclass(frozen=True)
class HookSubscription:
    """One callback subscribed to one hook on behalf of a plugin."""
    hook_name: str
    callback: Callable[..., Any]
    plugin_origin: str
    order: int

    @property
    def key(self) -> str:
        """Name under which the subscription is held by pluggy."""
        return f"{self.plugin_origin}::{self.hook_name}::{self.order}"


@dataclass
class HookFailureRecord:
    """A recorded subscriber failure for later inspection."""
    subscription: HookSubscription
    error: HookCallbackFailure
    mode: str = "collect"
    details: Dict[str, Any] = field(default_factory=dict)


class HookPipeline:
    """
    Ordered dispatch of named extension points.

    Subscribers for one hook run strictly in the order they subscribed. The
    order is stable for the process lifetime because subscriptions are only
    ever appended (a plugin re-registration removes its own subscriptions and
    appends the new ones).
    """

    def __init__(self, max_failures: int = 100):
        """
        Initialize the hook pipeline.

        Args:
            max_failures: Number of recent subscriber failures to keep
        """
        self.logger = logging.getLogger("blockpress.plugins.hooks")

        self.pm = pluggy.PluginManager(PROJECT_NAME)
        self.pm.add_hookspecs(DocumentHooks)

        self._subscriptions: Dict[str, HookSubscription] = {}
        self._order = itertools.count()
        self.failures: Deque[HookFailureRecord] = deque(maxlen=max_failures)

    def subscribe(
        self,
        hook_name: str,
        callback: Callable[..., Any],
        plugin_origin: str
    ) -> HookSubscription:
        """
        Append a callback to a hook's subscriber list.

        Args:
            hook_name: Name of the extension point
            callback: Callable invoked on dispatch
            plugin_origin: Name of the contributing plugin

        Returns:
            The created subscription

        Raises:
            ValueError: If the hook name is not a lowercase identifier
            TypeError: If the callback is not callable
        """
        if not isinstance(hook_name, str) or not _HOOK_NAME.match(hook_name):
            raise ValueError(f"Invalid hook name: {hook_name!r}")
        if not callable(callback):
            raise TypeError(f"Hook callback for '{hook_name}' is not callable")

        subscription = HookSubscription(
            hook_name=hook_name,
            callback=callback,
            plugin_origin=plugin_origin,
            order=next(self._order),
        )

        def _dispatch(*args):
            return callback(*args)

        carrier = types.SimpleNamespace(**{hook_name: hookimpl(_dispatch)})
        self.pm.register(carrier, name=subscription.key)
        self._subscriptions[subscription.key] = subscription

        self.logger.debug(f"Subscribed {plugin_origin} to {hook_name} (#{subscription.order})")
        return subscription

    def unsubscribe_origin(self, plugin_origin: str) -> int:
        """
        Remove every subscription contributed by one plugin.

        Returns:
            Number of removed subscriptions
        """
        keys = [key for key, sub in self._subscriptions.items() if sub.plugin_origin == plugin_origin]
        for key in keys:
            self.pm.unregister(name=key)
            del self._subscriptions[key]

        if keys:
            self.logger.debug(f"Removed {len(keys)} subscription(s) from {plugin_origin}")
        return len(keys)

    def subscriptions(self, hook_name: str) -> List[HookSubscription]:
        """Get a hook's subscriptions in dispatch order."""
        caller = getattr(self.pm.hook, hook_name, None)
        if caller is None:
            return []

        subs = [
            self._subscriptions[impl.plugin_name]
            for impl in caller.get_hookimpls()
            if impl.plugin_name in self._subscriptions
        ]
        return sorted(subs, key=lambda sub: sub.order)

    def hook_names(self) -> List[str]:
        """Get names of all hooks that have at least one subscriber."""
        return sorted({sub.hook_name for sub in self._subscriptions.values()})

    def collect(self, hook_name: str, *args: Any) -> List[Any]:
        """
        Run every subscriber and gather the results in order.

        A subscriber that raises is logged and left out of the results.
        """
        results = []
        for subscription in self.subscriptions(hook_name):
            ok, result = self._invoke(subscription, "collect", args)
            if ok:
                results.append(result)
        return results

    def fold(
        self,
        hook_name: str,
        seed: Any,
        *args: Any,
        expect: Optional[Union[Type, Tuple[Type, ...]]] = None,
        isolate: Optional[Callable[[Any], Any]] = None
    ) -> Any:
        """
        Thread a value through every subscriber in order.

        Each subscriber is called as ``callback(accumulator, *args)`` and its
        return value becomes the new accumulator. A subscriber that raises, or
        whose result is not an instance of ``expect`` when given, leaves the
        accumulator unchanged.

        Args:
            hook_name: Name of the extension point
            seed: Initial accumulator
            *args: Extra arguments passed to every subscriber
            expect: Type(s) each result must have to be accepted
            isolate: Copy function applied to the accumulator before each
                subscriber, so in-place edits by a rejected step are dropped

        Returns:
            Final accumulator
        """
        accumulator = seed
        for subscription in self.subscriptions(hook_name):
            value = isolate(accumulator) if isolate is not None else accumulator
            ok, result = self._invoke(subscription, "fold", (value,) + args)
            if not ok:
                continue

            if expect is not None and not isinstance(result, expect):
                error = HookCallbackFailure(
                    f"Subscriber from {subscription.plugin_origin} returned "
                    f"{type(result).__name__} to '{hook_name}'",
                    hook_name=hook_name,
                    plugin_origin=subscription.plugin_origin,
                )
                self._record(subscription, error, "fold")
                continue

            accumulator = result
        return accumulator

    def _invoke(self, subscription: HookSubscription, mode: str, args: Tuple[Any, ...]) -> Tuple[bool, Any]:
        try:
            return True, subscription.callback(*args)
        except Exception as e:
            error = HookCallbackFailure(
                f"Subscriber from {subscription.plugin_origin} failed in "
                f"'{subscription.hook_name}': {e}",
                hook_name=subscription.hook_name,
                plugin_origin=subscription.plugin_origin,
                cause=e,
            )
            self._record(subscription, error, mode)
            return False, None

    def _record(self, subscription: HookSubscription, error: HookCallbackFailure, mode: str) -> None:
        self.logger.warning(error.message, exc_info=error.cause is not None)
        self.failures.append(HookFailureRecord(subscription=subscription, error=error, mode=mode))
