from dataclasses import dataclass
from pprint import pformat
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar


DataToken = TypeVar("DataToken")


@dataclass(frozen=True)
class TokenStack:
    """An immutable linked stack of the tokens at the scopes enclosing the current one.

    Pushing shares the tail with the original stack, so many contexts expanded from the same
    parent can hold the parent's stack without copying it.
    """

    __slots__ = ("value", "tail")

    value: Any
    tail: Optional["TokenStack"]

    def push(self, value: Any) -> "TokenStack":
        return TokenStack(value, self)

    def pop(self) -> Tuple[Any, "TokenStack"]:
        if self.tail is None:
            raise AssertionError(
                "Attempted to pop the bottom element of a token stack. "
                "Every backtrack must match an earlier traversal; this is a bug."
            )
        return self.value, self.tail


_EMPTY_STACK = TokenStack(None, None)


class DataContext(Generic[DataToken]):
    """Bookkeeping for one partial result row as it moves through the query.

    Only current_token is of interest to adapters: it is the vertex the adapter is asked about,
    or None when the context sits in an @optional scope whose edge did not exist.
    """

    __slots__ = (
        "current_token",
        "outputs",
        "suspended_tokens",
    )

    current_token: Optional[DataToken]
    outputs: Dict[str, Any]
    suspended_tokens: TokenStack

    def __init__(
        self,
        current_token: Optional[DataToken],
        outputs: Dict[str, Any],
        suspended_tokens: TokenStack,
    ) -> None:
        self.current_token = current_token
        self.outputs = outputs
        self.suspended_tokens = suspended_tokens

    def __repr__(self) -> str:
        return (
            f"DataContext(current={self.current_token}, "
            f"outputs={pformat(self.outputs)}, "
            f"suspended={self.suspended_tokens})"
        )

    __str__ = __repr__

    @staticmethod
    def make_empty_context_from_token(token: DataToken) -> "DataContext[DataToken]":
        return DataContext(token, dict(), _EMPTY_STACK)

    def descend_into(self, neighbor: Optional[DataToken]) -> "DataContext[DataToken]":
        """Return a new context at the given neighbor, remembering this context's token."""
        return DataContext(
            neighbor,
            dict(self.outputs),  # sibling neighbors must not see each other's outputs
            self.suspended_tokens.push(self.current_token),
        )

    def backtrack(self) -> "DataContext[DataToken]":
        """Return to the token that was current before the most recent descend_into() call."""
        parent_token, remaining_stack = self.suspended_tokens.pop()
        self.current_token = parent_token
        self.suspended_tokens = remaining_stack
        return self  # for chaining

    def record_output(self, out_name: str, value: Any) -> None:
        self.outputs[out_name] = value
