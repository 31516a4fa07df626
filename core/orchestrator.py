"""
core/orchestrator.py

Central request handler: from one utterance to one reply.

The flow is linear:

    Received -> (train? -> Acknowledged)
             -> Classified -> Validated -> UserResolved -> ContextChecked
             -> Routed -> Logged -> Replied

Training commands are recognized before anything else and return right away:
no classification, no routing, no interaction record.

Every stage after that either succeeds, comes back "absent" (a normal empty
answer), or fails. What happens next is decided by STAGE_POLICY below, not by
ad hoc checks at each call site.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config.logging_config import get_logger
from core.classifier import BayesClassifier, TrainCommand, parse_command
from core.input_builder import build_input, require_command
from monitoring.metrics import CLASSIFICATION_COUNT, REQUEST_COUNT
from packages.router import PackageRouter
from services.context_tracker import ContextTracker
from services.interaction_logger import InteractionLogger
from services.user_resolver import UserResolver
from shared.errors import AvaError, ClassifierError
from shared.models import Message, StructuredInput
from shared.utils import truncate_message_for_logging

TRAINED_ACK = "ok"


class Policy(Enum):
    DEGRADE = "degrade"  # log, continue with a default value
    ABORT = "abort"      # log, propagate to the caller as an error response


# stage -> outcome -> policy
#
#   classify      failed  -> degrade: empty StructuredInput (fallback reply follows)
#   validate      failed  -> abort:   ValidationError
#   resolve_user  absent  -> degrade: user is None
#   resolve_user  failed  -> degrade: user is None
#   add_context   absent  -> degrade: continuation = False
#   add_context   failed  -> degrade: continuation = False
#   route         absent  -> degrade: fallback reply, empty package name
#   route         failed  -> abort:   PackageClientError, nothing persisted
#   save          failed  -> abort:   InteractionLogError, no reply sent
STAGE_POLICY = {
    "classify": {"failed": Policy.DEGRADE},
    "validate": {"failed": Policy.ABORT},
    "resolve_user": {"absent": Policy.DEGRADE, "failed": Policy.DEGRADE},
    "add_context": {"absent": Policy.DEGRADE, "failed": Policy.DEGRADE},
    "route": {"absent": Policy.DEGRADE, "failed": Policy.ABORT},
    "save": {"failed": Policy.ABORT},
}


def generate_interaction_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class DispatchResult:
    """
    What the API layer needs to answer a request.

    `interaction_row` is the id of the persisted record, None for training
    commands (which are never logged).
    """
    reply: str
    interaction_id: str
    package_name: str = ""
    route: str = ""
    trained: bool = False
    interaction_row: Optional[int] = None


class Dispatcher:
    """
    Owns one instance of every pipeline stage and runs requests through them.

    Responsibilities:
    - Short-circuit training commands into the shared classifier
    - Classify, validate, resolve the user and link context for everything else
    - Route to exactly one package or substitute the fallback reply
    - Persist the outcome before handing the reply back

    The dispatcher itself holds no per-request state, so one instance serves
    concurrent requests; the classifier is the only shared mutable component
    and guards itself.
    """

    def __init__(
        self,
        classifier: BayesClassifier,
        user_resolver: UserResolver,
        context_tracker: ContextTracker,
        router: PackageRouter,
        interaction_logger: InteractionLogger,
        fallback_reply: str
    ):
        self.classifier = classifier
        self.user_resolver = user_resolver
        self.context_tracker = context_tracker
        self.router = router
        self.interaction_logger = interaction_logger
        self.fallback_reply = fallback_reply

    def _apply_policy(self, log, stage: str, outcome: str, error: Optional[BaseException] = None) -> Policy:
        """Log a non-success stage outcome and return what the table says to do next."""
        policy = STAGE_POLICY[stage][outcome]
        if policy is Policy.ABORT:
            log.error(f"Stage {stage} {outcome}, aborting request: {error}")
            return policy
        if outcome == "failed":
            log.warning(f"Stage {stage} failed, continuing degraded: {error}", exc_info=error)
        else:
            log.debug(f"Stage {stage} absent, continuing")
        return policy

    def process(
        self,
        cmd: Optional[str],
        uid: Optional[str] = None,
        flexidtype: Optional[str] = None,
        flex_id: Optional[str] = None
    ) -> DispatchResult:
        """
        Handle one utterance end to end.

        Args:
            cmd (Optional[str]): The utterance; must be non-empty
            uid (Optional[str]): Raw numeric user id field
            flexidtype (Optional[str]): Raw numeric channel-type field
            flex_id (Optional[str]): Channel address from the transport layer

        Returns:
            DispatchResult: reply text plus routing details

        Raises:
            InvalidCommandError: empty utterance
            TrainingCommandError: malformed train command
            ValidationError: malformed uid / flexidtype
            PackageClientError: the selected package failed
            InteractionLogError: the record could not be persisted
        """
        interaction_id = generate_interaction_id()
        log = get_logger(__name__, interaction_id=interaction_id)
        try:
            result = self._process(log, interaction_id, cmd, uid, flexidtype, flex_id)
        except AvaError as e:
            REQUEST_COUNT.labels(outcome="rejected" if e.status_code < 500 else "failed").inc()
            raise
        if result.trained:
            outcome = "trained"
        elif result.package_name:
            outcome = "replied"
        else:
            outcome = "fallback"
        REQUEST_COUNT.labels(outcome=outcome).inc()
        return result

    def _process(self, log, interaction_id, cmd, uid, flexidtype, flex_id) -> DispatchResult:
        text = require_command(cmd)

        command = parse_command(text)
        if isinstance(command, TrainCommand):
            self.classifier.train(command.label, command.text)
            log.info(f"Trained label '{command.label}'")
            return DispatchResult(reply=TRAINED_ACK, interaction_id=interaction_id, trained=True)

        log.info(f"Processing '{truncate_message_for_logging(text, 50)}'")

        # Classified
        try:
            si = self.classifier.classify(text)
            CLASSIFICATION_COUNT.labels(label=si.command).inc()
        except ClassifierError as e:
            self._apply_policy(log, "classify", "failed", e)
            si = StructuredInput.empty(text)

        # Validated
        try:
            msg_input = build_input(si, uid, flexidtype, flex_id)
        except AvaError as e:
            if self._apply_policy(log, "validate", "failed", e) is Policy.ABORT:
                raise

        # UserResolved
        user_lookup = self.user_resolver.get_user(msg_input)
        if not user_lookup.is_found:
            self._apply_policy(log, "resolve_user", user_lookup.status.value, user_lookup.error)
        message = Message(user=user_lookup.value, input=msg_input)

        # ContextChecked
        context_lookup = self.context_tracker.add_context(message)
        if context_lookup.is_found:
            message = context_lookup.value
        else:
            self._apply_policy(log, "add_context", context_lookup.status.value, context_lookup.error)

        # Routed
        try:
            route_lookup = self.router.call_pkg(message)
        except AvaError as e:
            if self._apply_policy(log, "route", "failed", e) is Policy.ABORT:
                raise
        if route_lookup.is_found:
            routed = route_lookup.value
            reply, package_name, route = routed.reply, routed.package_name, routed.route
            log.extra['package_name'] = package_name
        else:
            self._apply_policy(log, "route", "absent")
            reply, package_name, route = "", "", ""

        if not reply:
            reply = self.fallback_reply

        # Logged
        try:
            row_id = self.interaction_logger.save(msg_input, reply, package_name, route)
        except AvaError as e:
            if self._apply_policy(log, "save", "failed", e) is Policy.ABORT:
                raise

        log.info(f"Replied via {package_name or 'fallback'} (route={route!r})")
        return DispatchResult(
            reply=reply,
            interaction_id=interaction_id,
            package_name=package_name,
            route=route,
            interaction_row=row_id,
        )
