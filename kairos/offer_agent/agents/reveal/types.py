from enum import Enum

from pydantic import BaseModel


class RevealStrategy(str, Enum):
    ROW_ICON = "row_icon"
    ABOVE_CANCEL = "above_cancel"
    NOT_FOUND = "not_found"


class RevealResult(BaseModel):
    strategy: RevealStrategy
    clicked: bool = False

    @property
    def found(self) -> bool:
        return self.strategy != RevealStrategy.NOT_FOUND
