"""
shared/models.py

Common data models used across the dispatch pipeline.

An utterance flows through these shapes in order: the classifier produces a
`StructuredInput`, the input builder wraps it into an `Input` together with the
caller's identity, the orchestrator pairs it with a resolved `User` into a
`Message`, and the final outcome is persisted as an `InteractionRecord`.

Stages that can legitimately come back empty (user lookup, context lookup,
package selection) return a `Lookup` instead of raising, so the orchestrator can
branch on `found` / `absent` / `failed` explicitly.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum, IntEnum
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar
from pydantic import BaseModel, Field


class FlexIdType(IntEnum):
    """
    Channel kinds a FlexId can belong to.

    The numeric values are the codes accepted in the `flexidtype` request field.
    NONE (0) is what an absent or empty field resolves to.
    """
    NONE = 0
    EMAIL = 1
    PHONE = 2


@dataclass(frozen=True)
class StructuredInput:
    """
    Classified form of one utterance.

    `command` is the winning intent label ("" when nothing could be classified),
    `confidence` its probability, and `scores` the full ranking as
    (label, probability) pairs, best first. `sentence` is the raw text, unchanged.
    """
    command: str
    confidence: float
    sentence: str
    scores: Tuple[Tuple[str, float], ...] = ()

    @classmethod
    def empty(cls, sentence: str) -> "StructuredInput":
        """Low-confidence placeholder used when classification failed."""
        return cls(command="", confidence=0.0, sentence=sentence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'command': self.command,
            'confidence': self.confidence,
            'sentence': self.sentence,
            'scores': [[label, prob] for label, prob in self.scores],
        }


@dataclass
class Input:
    structured_input: StructuredInput
    user_id: int = 0
    flex_id: str = ""
    flex_id_type: FlexIdType = FlexIdType.NONE

    @property
    def is_anonymous(self) -> bool:
        """True when neither a user id nor a channel address identifies the sender."""
        return self.user_id == 0 and not self.flex_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'structured_input': self.structured_input.to_dict(),
            'user_id': self.user_id,
            'flex_id': self.flex_id,
            'flex_id_type': int(self.flex_id_type),
        }


@dataclass(frozen=True)
class User:
    """A known identity. Owned by the store; this service only looks users up."""
    id: int
    name: str = ""
    email: str = ""
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    """
    One request as seen by the router: the resolved user (or None) and the input.

    The context tracker sets `continuation` and fills `context` with details of
    the previous turn; it never touches `input.structured_input`.
    """
    user: Optional[User]
    input: Input
    continuation: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user.to_dict() if self.user else None,
            'input': self.input.to_dict(),
            'continuation': self.continuation,
            'context': dict(self.context),
        }


@dataclass(frozen=True)
class Package:
    """A registered handler: a stable name, where to reach it, and which labels it handles."""
    name: str
    url: str
    triggers: Tuple[str, ...] = ()

    def handles(self, label: str) -> bool:
        return bool(label) and label in self.triggers


@dataclass(frozen=True)
class RouteResult:
    """What the package router hands back after a successful call."""
    reply: str
    route: str
    package_name: str


@dataclass(frozen=True)
class InteractionRecord:
    """Audit row written once per completed request. Never updated."""
    input: Input
    reply: str
    package_name: str
    route: str


class LookupStatus(Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


T = TypeVar("T")


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """
    Tagged result for stages with a legitimate "nothing there" outcome.

    ABSENT is a normal answer (no such user, no package for this label),
    FAILED means the stage could not answer at all and carries the exception.
    """
    status: LookupStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def found(cls, value: T) -> "Lookup[T]":
        return cls(LookupStatus.FOUND, value=value)

    @classmethod
    def absent(cls) -> "Lookup[T]":
        return cls(LookupStatus.ABSENT)

    @classmethod
    def failed(cls, error: BaseException) -> "Lookup[T]":
        return cls(LookupStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def is_absent(self) -> bool:
        return self.status is LookupStatus.ABSENT

    @property
    def is_failed(self) -> bool:
        return self.status is LookupStatus.FAILED


class PackageReply(BaseModel):
    """
    Validate the JSON body a package answers with.

    Kept deliberately loose: both fields default to empty strings so that a
    package which has nothing to say can answer `{}`. Anything that is not a
    JSON object, or carries non-string fields, is rejected as malformed.
    """
    reply: str = Field("", description="Text shown to the end user")
    route: str = Field("", description="Package-defined route, replayed on continuation")


class RpcRequest(BaseModel):
    """One newline-delimited request received by the remote invocation listener."""
    id: Optional[Any] = None
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
