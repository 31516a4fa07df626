"""
packages/router.py

Selects the one package that handles a message and invokes it.

Selection:
1. If the message continues a previous turn and the package that answered that
   turn is still registered, it gets the message again together with its
   previous route.
2. Otherwise the first registered package whose triggers contain the
   classified label is called with an empty route.
3. If neither applies the result is ABSENT ("no package"), which the caller
   answers with the fallback reply.

Any failure while calling the chosen package (timeout, transport error,
malformed reply) raises PackageClientError and aborts the request.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from monitoring.metrics import PACKAGE_CALL_TIME, track_errors, track_latency
from packages.client import post_message
from packages.registry import PackageRegistry
from shared.models import Lookup, Message, Package, PackageReply, RouteResult

logger = logging.getLogger(__name__)


class PackageRouter:
    def __init__(
        self,
        registry: PackageRegistry,
        timeout_s: float = 5.0,
        invoke: Callable[..., PackageReply] = post_message
    ):
        self.registry = registry
        self.timeout_s = timeout_s
        self._post = invoke

    def select(self, message: Message) -> Optional[Tuple[Package, str]]:
        """Return the package to call and the route to pass it, or None."""
        if message.continuation:
            previous = self.registry.get(message.context.get("package_name", ""))
            if previous is not None:
                return previous, message.context.get("route", "")
            logger.info(
                f"[PackageRouter] Previous package '{message.context.get('package_name')}' "
                f"is no longer registered, routing from scratch"
            )

        package = self.registry.for_label(message.input.structured_input.command)
        if package is None:
            return None
        return package, ""

    def call_pkg(self, message: Message) -> Lookup[RouteResult]:
        """
        Route `message` to exactly one package.

        Returns:
            Lookup[RouteResult]: FOUND with the reply, route and package name;
            ABSENT when no package handles the message.

        Raises:
            PackageClientError: the chosen package could not be called or
                answered with something that is not a reply.
        """
        selected = self.select(message)
        if selected is None:
            return Lookup.absent()

        package, route = selected
        continuation = message.continuation and package.name == message.context.get("package_name")
        payload = {
            "message": message.to_dict(),
            "continuation": continuation,
            "route": route,
        }
        logger.info(f"[PackageRouter] Routing '{message.input.structured_input.command}' to package '{package.name}'")
        answer = self._invoke(package, payload)
        return Lookup.found(RouteResult(reply=answer.reply, route=answer.route, package_name=package.name))

    @track_latency(PACKAGE_CALL_TIME, lambda self, package, payload: {'package': package.name})
    @track_errors('package', 'package_router')
    def _invoke(self, package: Package, payload: Dict[str, Any]) -> PackageReply:
        return self._post(package.url, payload, timeout_s=self.timeout_s)
