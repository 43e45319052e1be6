from dataclasses import dataclass, field
from time import time


@dataclass(frozen=True)
class DomainEvent:
    timestamp: float = field(default_factory=time)


@dataclass(frozen=True)
class RecordPressed(DomainEvent):
    pass


@dataclass(frozen=True)
class RecordReleased(DomainEvent):
    pass
