from enum import Enum

from pydantic import BaseModel, ConfigDict


class DecisionKind(str, Enum):
    ACCEPT = "accept"
    COUNTER_OFFER = "counter_offer"
    DISCARD = "discard"


class Decision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    amount: int | None = None
    reason: str = ""

    @classmethod
    def accept(cls, reason: str = "") -> "Decision":
        return cls(kind=DecisionKind.ACCEPT, reason=reason)

    @classmethod
    def counter(cls, amount: int, reason: str = "") -> "Decision":
        return cls(kind=DecisionKind.COUNTER_OFFER, amount=amount, reason=reason)

    @classmethod
    def discard(cls, reason: str = "") -> "Decision":
        return cls(kind=DecisionKind.DISCARD, reason=reason)

    def __str__(self) -> str:
        if self.kind == DecisionKind.COUNTER_OFFER:
            return f"COUNTER_OFFER({self.amount})"
        return self.kind.name
