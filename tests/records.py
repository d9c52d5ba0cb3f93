"""Record types and runner helpers shared by the unit tests."""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
from unittest.mock import MagicMock

from pydantic import BaseModel

from neopersist import mapped, mapped_field, node
from neopersist.values import NodeValue, QueryResult, RelationshipValue


@node(label="User")
@dataclass
class User:
    user_id: str = mapped("userId", pk=True)
    name: str = mapped("name", default="")
    email: Optional[str] = mapped("email", default=None)
    nickname: str = ""


@node(label="Post")
@dataclass
class Post:
    post_id: str = mapped("postId", pk=True)
    title: str = mapped("title", default="")


@dataclass
class Tag:
    """No @node decorator: label falls back to the class name."""

    slug: str = field(metadata={"ogm": "pk, property:slug"})
    weight: int = field(default=1, metadata={"ogm": "property:weight"})


class Account(BaseModel):
    __label__ = "BankAccount"

    account_id: str = mapped_field("accountId", pk=True)
    balance: int = mapped_field("balance", default=0)
    owner: Optional[str] = mapped_field("owner", default=None)


def user_node(user_id: str, name: str = "", email: Optional[str] = None, id: str = "") -> NodeValue:
    props = {"userId": user_id, "name": name}
    if email is not None:
        props["email"] = email
    return NodeValue(id=id or f"n-{user_id}", labels=("User",), properties=props)


def post_node(post_id: str, title: str = "", id: str = "") -> NodeValue:
    return NodeValue(
        id=id or f"n-{post_id}", labels=("Post",), properties={"postId": post_id, "title": title}
    )


def wrote(rel_id: str, start: NodeValue, end: NodeValue, **props: Any) -> RelationshipValue:
    return RelationshipValue(
        id=rel_id, start_id=start.id, end_id=end.id, type="WROTE", properties=props
    )


def result(keys: Sequence[str], *rows: Sequence[Any]) -> QueryResult:
    return QueryResult.from_rows(keys, rows)


def mock_runner(*results: QueryResult) -> MagicMock:
    """A runner returning ``results`` in order (an empty result by default)."""
    runner = MagicMock()
    if len(results) == 1:
        runner.run.return_value = results[0]
    elif results:
        runner.run.side_effect = list(results)
    else:
        runner.run.return_value = QueryResult.empty()
    return runner


def last_query(runner: MagicMock):
    """Return ``(query, params, timeout)`` of the runner's last call."""
    args, kwargs = runner.run.call_args
    return args[0], args[1], kwargs.get("timeout")
