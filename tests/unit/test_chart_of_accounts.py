"""Unit tests for chart of accounts tree building and flattening."""
from types import SimpleNamespace
from uuid import uuid4

from app.services.chart_of_accounts import (
    account_options,
    build_account_tree,
    compute_path_and_depth,
    find_descendant_ids,
    flatten_account_tree,
    refresh_paths,
)


def _account(name, parent=None, account_type="ASSET", is_group=False, is_active=True):
    return SimpleNamespace(
        id=uuid4(),
        account_name=name,
        parent_id=parent.id if parent else None,
        account_type=account_type,
        is_group=is_group,
        is_active=is_active,
        path=None,
        depth=None,
    )


def _chart():
    assets = _account("Assets", is_group=True)
    bank = _account("Bank", parent=assets, is_group=True)
    main_bank = _account("Main Bank", parent=bank)
    expenses = _account("Expenses", account_type="EXPENSE", is_group=True)
    commission = _account("Commission Expense", parent=expenses, account_type="EXPENSE")
    return [assets, bank, main_bank, expenses, commission]


def test_build_tree_nests_children():
    assets, bank, main_bank, expenses, commission = _chart()

    roots = build_account_tree([assets, bank, main_bank, expenses, commission])

    assert [r.account for r in roots] == [assets, expenses]
    assert [c.account for c in roots[0].children] == [bank]
    assert [c.account for c in roots[0].children[0].children] == [main_bank]
    assert [c.account for c in roots[1].children] == [commission]


def test_missing_parent_makes_a_root():
    orphan = _account("Orphan")
    orphan.parent_id = uuid4()

    roots = build_account_tree([orphan])

    assert [r.account for r in roots] == [orphan]


def test_children_listed_before_parent_still_nest():
    assets, bank, main_bank, *_ = _chart()

    roots = build_account_tree([main_bank, bank, assets])

    assert [r.account for r in roots] == [assets]
    assert roots[0].children[0].children[0].account is main_bank


def test_flatten_is_pre_order_with_depth_and_path():
    accounts = _chart()

    rows = list(flatten_account_tree(build_account_tree(accounts)))

    assert [(r.account.account_name, r.depth, r.path) for r in rows] == [
        ("Assets", 0, "Assets"),
        ("Bank", 1, "Assets / Bank"),
        ("Main Bank", 2, "Assets / Bank / Main Bank"),
        ("Expenses", 0, "Expenses"),
        ("Commission Expense", 1, "Expenses / Commission Expense"),
    ]


def test_flatten_empty():
    assert list(flatten_account_tree(build_account_tree([]))) == []


def test_options_filtered_by_type_keep_full_path():
    rows = account_options(_chart(), account_type="EXPENSE")

    assert [(r.path, r.depth) for r in rows] == [
        ("Expenses", 0),
        ("Expenses / Commission Expense", 1),
    ]


def test_options_postable_only_skips_groups():
    rows = account_options(_chart(), postable_only=True)

    assert [r.path for r in rows] == [
        "Assets / Bank / Main Bank",
        "Expenses / Commission Expense",
    ]


def test_options_hide_inactive_but_keep_ancestry():
    assets, bank, main_bank, expenses, commission = _chart()
    bank.is_active = False
    accounts = [assets, bank, main_bank, expenses, commission]

    active = account_options(accounts)
    everything = account_options(accounts, active_only=False)

    assert "Assets / Bank" not in [r.path for r in active]
    assert "Assets / Bank / Main Bank" in [r.path for r in active]
    assert len(everything) == 5


def test_compute_path_and_depth():
    root = SimpleNamespace(account_name="Assets", path="Assets", depth=0)
    child = SimpleNamespace(account_name="Bank", path="Assets / Bank", depth=1)

    assert compute_path_and_depth("Assets", None) == ("Assets", 0)
    assert compute_path_and_depth("Bank", root) == ("Assets / Bank", 1)
    assert compute_path_and_depth("Main Bank", child) == ("Assets / Bank / Main Bank", 2)


def test_find_descendant_ids():
    assets, bank, main_bank, expenses, commission = _chart()
    accounts = [assets, bank, main_bank, expenses, commission]

    assert find_descendant_ids(accounts, assets.id) == {bank.id, main_bank.id}
    assert find_descendant_ids(accounts, main_bank.id) == set()


def test_refresh_paths_after_move():
    assets, bank, main_bank, expenses, commission = _chart()
    accounts = [assets, bank, main_bank, expenses, commission]
    assert refresh_paths(accounts) == 5

    bank.parent_id = expenses.id
    changed = refresh_paths(accounts)

    assert changed == 2
    assert bank.path == "Expenses / Bank"
    assert bank.depth == 1
    assert main_bank.path == "Expenses / Bank / Main Bank"
    assert main_bank.depth == 2
    assert refresh_paths(accounts) == 0
