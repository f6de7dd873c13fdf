"""Chart of Accounts hierarchy helpers.

Accounts are stored flat with a parent_id. These helpers rebuild the tree and
flatten it back into (node, depth, path) rows for indented select options.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Sequence
from uuid import UUID

PATH_SEPARATOR = " / "


@dataclass
class AccountNode:
    """One chart account plus its children."""
    account: Any
    children: List["AccountNode"] = field(default_factory=list)


@dataclass(frozen=True)
class FlatAccount:
    node: AccountNode
    depth: int
    path: str

    @property
    def account(self) -> Any:
        return self.node.account


def build_account_tree(accounts: Sequence[Any]) -> List[AccountNode]:
    """
    Nest accounts by parent_id.

    Accounts whose parent is missing from the input are treated as roots.
    Siblings keep the order of the input (callers sort by account code).
    """
    nodes = {a.id: AccountNode(account=a) for a in accounts}
    roots: List[AccountNode] = []

    for account in accounts:
        node = nodes[account.id]
        parent = nodes.get(account.parent_id) if account.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    return roots


def flatten_account_tree(
    nodes: Iterable[AccountNode],
    depth: int = 0,
    prefix: str = "",
) -> Iterator[FlatAccount]:
    """Pre-order walk yielding each node with its depth and ' / '-joined name path."""
    for node in nodes:
        name = node.account.account_name
        path = f"{prefix}{PATH_SEPARATOR}{name}" if prefix else name
        yield FlatAccount(node=node, depth=depth, path=path)
        if node.children:
            yield from flatten_account_tree(node.children, depth + 1, path)


def account_options(
    accounts: Sequence[Any],
    account_type: Optional[str] = None,
    active_only: bool = True,
    postable_only: bool = False,
) -> List[FlatAccount]:
    """
    Flattened chart for dropdowns.

    Filters run after flattening so every kept row still shows its full ancestry.
    """
    rows = flatten_account_tree(build_account_tree(accounts))
    result = []
    for row in rows:
        account = row.account
        if active_only and not account.is_active:
            continue
        if account_type and account.account_type != account_type:
            continue
        if postable_only and account.is_group:
            continue
        result.append(row)
    return result


def compute_path_and_depth(account_name: str, parent: Optional[Any]) -> tuple[str, int]:
    """Materialized path/depth for a new account under parent (None for a root)."""
    if parent is None:
        return account_name, 0
    parent_path = parent.path or parent.account_name
    return f"{parent_path}{PATH_SEPARATOR}{account_name}", (parent.depth or 0) + 1


def refresh_paths(accounts: Sequence[Any]) -> int:
    """Rewrite path and depth of every account from the current parent links. Returns how many changed."""
    changed = 0
    for row in flatten_account_tree(build_account_tree(accounts)):
        account = row.account
        if account.path != row.path or account.depth != row.depth:
            account.path = row.path
            account.depth = row.depth
            changed += 1
    return changed


def find_descendant_ids(accounts: Sequence[Any], account_id: UUID) -> set:
    """Ids of every account below account_id."""
    children_of: dict = {}
    for a in accounts:
        children_of.setdefault(a.parent_id, []).append(a.id)

    found = set()
    stack = list(children_of.get(account_id, []))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(children_of.get(current, []))
    return found
